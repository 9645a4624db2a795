"""
Приём реплик на стороне target.

Назначение:
- upsert документа/вложения с сохранением идентификатора source
- полная замена расширенных атрибутов после основной записи
- синхронизация классификации по схемам из запроса
- сохранение файла вложения и пересборка миниатюр

Применение документа идёт в одной транзакции БД: при ошибке ничего не остаётся.
"""

from __future__ import annotations

import base64
import binascii
import posixpath
from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from content_replicator.common.errors import ErrCode, ProviderError, ValidationError
from content_replicator.common.logging import get_sync_logger
from content_replicator.common.time import db_now, to_db_time
from content_replicator.contracts.sync_api import AttachmentSyncRequest, DocumentSyncRequest
from content_replicator.replication.renditions import parse_sizes, regenerate_renditions
from content_replicator.storage import blob
from content_replicator.storage.db import db_session
from content_replicator.storage.models import Attachment, Document
from content_replicator.storage.repositories import (
    AttachmentRepository,
    ClassificationTermRepository,
    DocumentRepository,
)

log = get_sync_logger()

RowT = TypeVar("RowT", Document, Attachment)


@dataclass(frozen=True)
class UpsertResult:
    id: int
    identity_preserved: bool


def upsert_with_identity(
    session: Session,
    *,
    model: type[RowT],
    source_id: int,
    apply_fields: Callable[[RowT], None],
    next_id: Callable[[], int],
) -> tuple[RowT, UpsertResult]:
    """
    Общая стратегия для документов и вложений:
    1) строка с source_id == id уже есть -> обновляем на месте
    2) id свободен -> вставка с тем же id (под savepoint)
    3) id занят чужой строкой или вставку опередили -> новый id, source_id=id
    """
    existing = session.query(model).filter(model.source_id == source_id).one_or_none()
    if existing is not None:
        apply_fields(existing)
        session.flush()
        return existing, UpsertResult(id=existing.id, identity_preserved=existing.id == source_id)

    if session.get(model, source_id) is None:
        row = model(id=source_id, source_id=source_id)
        apply_fields(row)
        try:
            with session.begin_nested():
                session.add(row)
                session.flush()
            return row, UpsertResult(id=source_id, identity_preserved=True)
        except IntegrityError:
            log.info(
                "sync_identity_insert_lost_race",
                extra={"payload": {"table": model.__tablename__, "source_id": source_id}},
            )

    row = model(id=next_id(), source_id=source_id)
    apply_fields(row)
    session.add(row)
    session.flush()
    log.warning(
        "sync_identity_diverged",
        extra={
            "payload": {
                "table": model.__tablename__,
                "source_id": source_id,
                "target_id": row.id,
            }
        },
    )
    return row, UpsertResult(id=row.id, identity_preserved=False)


def _stored_keys(storage_key: str, metadata: Any) -> set[str]:
    """
    Ключи файла вложения и его миниатюр (миниатюры лежат рядом с файлом).
    """
    keys = {storage_key}
    sizes = metadata.get("sizes") if isinstance(metadata, dict) else None
    if isinstance(sizes, dict):
        folder = posixpath.dirname(storage_key)
        for item in sizes.values():
            if isinstance(item, dict) and item.get("file"):
                keys.add(posixpath.join(folder, str(item["file"])))
    return keys


def _discard(keys: set[str]) -> None:
    for key in sorted(keys):
        try:
            blob.delete(key)
        except (OSError, ValueError) as e:
            log.warning(
                "sync_file_cleanup_failed",
                extra={"payload": {"storage_key": key, "err": str(e)[:200]}},
            )


class ReplicationReceiver:
    def __init__(
        self,
        *,
        thumbnail_sizes: str = "",
        session_factory: Callable[[], AbstractContextManager[Session]] = db_session,
    ) -> None:
        self.sizes = parse_sizes(thumbnail_sizes)
        self._session_factory = session_factory

    # -------------------------------------------------------------------------
    # Документы
    # -------------------------------------------------------------------------
    def apply_document(self, request: DocumentSyncRequest) -> UpsertResult:
        fields = request.document

        def _fill(doc: Document) -> None:
            doc.doc_type = fields.doc_type
            doc.title = fields.title
            doc.body = fields.body
            doc.excerpt = fields.excerpt
            doc.status = fields.status
            doc.slug = fields.slug
            doc.author_id = fields.author_id
            doc.parent_id = fields.parent_id
            doc.menu_order = fields.menu_order
            doc.comment_status = fields.comment_status
            doc.password = fields.password
            doc.mime_type = fields.mime_type
            doc.permalink = fields.permalink
            doc.published_at = to_db_time(fields.published_at) if fields.published_at else None
            doc.modified_at = to_db_time(fields.modified_at) if fields.modified_at else None

        try:
            with self._session_factory() as session:
                docs = DocumentRepository(session)
                _, result = upsert_with_identity(
                    session,
                    model=Document,
                    source_id=fields.id,
                    apply_fields=_fill,
                    next_id=docs.next_id,
                )
                # Атрибуты только после основной записи, пустой набор тоже заменяет
                docs.replace_attributes(result.id, request.extended_attributes)

                terms = ClassificationTermRepository(session)
                for scheme, refs in request.classification_groups.items():
                    term_ids = [
                        terms.ensure(scheme=scheme, slug=ref.slug, name=ref.name).id for ref in refs
                    ]
                    terms.set_document_terms(document_id=result.id, scheme=scheme, term_ids=term_ids)
        except SQLAlchemyError as e:
            log.error(
                "sync_apply_failed",
                extra={"payload": {"content_kind": "document", "source_id": fields.id, "err": str(e)[:300]}},
            )
            raise ProviderError(ErrCode.APPLY_FAILED, "failed to apply document") from e

        log.info(
            "sync_document_applied",
            extra={"payload": {"source_id": fields.id, "target_id": result.id}},
        )
        return result

    # -------------------------------------------------------------------------
    # Вложения
    # -------------------------------------------------------------------------
    def apply_attachment(self, request: AttachmentSyncRequest) -> UpsertResult:
        desc = request.descriptor
        try:
            data = base64.b64decode(request.payload_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError("invalid file data", {"source_id": desc.id}) from e

        file_name = blob.sanitize_file_name(desc.file_name)
        folder = f"attachments/{desc.id}"
        existed_before = set(blob.list_keys(folder))
        try:
            storage_key = blob.put_bytes(f"{folder}/{file_name}", data)
        except OSError as e:
            raise ProviderError(ErrCode.STORAGE_ERROR, "failed to store file") from e
        metadata = regenerate_renditions(
            blob.key_to_path(storage_key),
            storage_key=storage_key,
            mime_type=desc.mime_type,
            sizes=self.sizes,
        )
        written = _stored_keys(storage_key, metadata)

        # Оба атрибута target выводит сам: пришедшие с source описывают файлы source
        attributes: dict[str, Any] = {
            "_attached_file": storage_key,
            "_attachment_metadata": metadata,
        }
        replaced: list[str] = []

        def _fill(att: Attachment) -> None:
            if att.storage_key and att.storage_key != storage_key:
                replaced.append(att.storage_key)
            att.title = desc.title
            att.caption = desc.caption
            att.mime_type = desc.mime_type
            att.file_name = file_name
            att.storage_key = storage_key
            att.file_size = len(data)
            att.updated_at = db_now()

        stale: set[str] = set()
        try:
            with self._session_factory() as session:
                repo = AttachmentRepository(session)
                _, result = upsert_with_identity(
                    session,
                    model=Attachment,
                    source_id=desc.id,
                    apply_fields=_fill,
                    next_id=repo.next_id,
                )
                if replaced:
                    previous = repo.get_attributes(result.id, ["_attachment_metadata"])
                    stale = _stored_keys(replaced[0], previous.get("_attachment_metadata")) - written
                for key, value in attributes.items():
                    repo.set_attribute(result.id, key, value)
        except SQLAlchemyError as e:
            log.error(
                "sync_apply_failed",
                extra={"payload": {"content_kind": "attachment", "source_id": desc.id, "err": str(e)[:300]}},
            )
            # строки нет: убираем только то, чего не было до записи
            _discard(written - existed_before)
            raise ProviderError(ErrCode.APPLY_FAILED, "failed to apply attachment") from e

        if stale:
            _discard(stale)
            log.info(
                "sync_attachment_files_replaced",
                extra={"payload": {"source_id": desc.id, "removed": sorted(stale)}},
            )

        log.info(
            "sync_attachment_applied",
            extra={"payload": {"source_id": desc.id, "target_id": result.id, "bytes": len(data)}},
        )
        return result
