"""
Сборка запросов репликации на стороне source.

Источник данных: локальные таблицы контента (их пишет внешняя CMS).
Ошибки данных (нет документа/файла, файл слишком большой) поднимаются как AppError,
диспетчер превращает их в неуспешный результат задачи.
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from content_replicator.common.errors import NotFoundError, PayloadTooLargeError, StoreUnavailableError
from content_replicator.contracts.sync_api import (
    ESSENTIAL_ATTACHMENT_ATTRIBUTES,
    AttachmentDescriptor,
    AttachmentSyncRequest,
    DocumentFields,
    DocumentSyncRequest,
    TermRef,
)
from content_replicator.storage import blob
from content_replicator.storage.db import db_session
from content_replicator.storage.repositories import AttachmentRepository, DocumentRepository


def format_size(num_bytes: int) -> str:
    value = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.1f} {unit}" if unit != "B" else f"{int(value)} B"
        value /= 1024
    return f"{value:.1f} GB"  # pragma: no cover


class ContentReader:
    """
    Чтение локального контента и упаковка в контракт протокола.
    """

    def __init__(
        self,
        *,
        max_attachment_bytes: int,
        session_factory: Callable[[], AbstractContextManager[Session]] = db_session,
    ) -> None:
        self.max_attachment_bytes = int(max_attachment_bytes)
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            raise StoreUnavailableError(
                "content store unavailable", details={"err": str(e)[:300]}
            ) from e

    def build_document_request(self, document_id: int) -> DocumentSyncRequest:
        with self._session() as session:
            repo = DocumentRepository(session)
            doc = repo.get(document_id)
            if doc is None:
                raise NotFoundError("document not found", {"content_id": document_id})

            attributes: dict[str, list[str]] = {}
            for attr in repo.list_attributes(document_id):
                attributes.setdefault(attr.key, []).append(attr.value)

            groups: dict[str, list[TermRef]] = {}
            for term in repo.list_terms(document_id):
                groups.setdefault(term.scheme, []).append(TermRef(slug=term.slug, name=term.name))

            fields = DocumentFields(
                id=doc.id,
                doc_type=doc.doc_type,
                title=doc.title,
                body=doc.body,
                excerpt=doc.excerpt,
                status=doc.status,
                slug=doc.slug,
                author_id=doc.author_id,
                parent_id=doc.parent_id,
                menu_order=doc.menu_order,
                comment_status=doc.comment_status,
                password=doc.password,
                mime_type=doc.mime_type,
                permalink=doc.permalink,
                published_at=doc.published_at,
                modified_at=doc.modified_at,
            )
        return DocumentSyncRequest(
            document=fields,
            extended_attributes=attributes,
            classification_groups=groups,
        )

    def build_attachment_request(self, attachment_id: int) -> AttachmentSyncRequest:
        with self._session() as session:
            repo = AttachmentRepository(session)
            att = repo.get(attachment_id)
            if att is None:
                raise NotFoundError("attachment not found", {"content_id": attachment_id})
            essential = repo.get_attributes(attachment_id, ESSENTIAL_ATTACHMENT_ATTRIBUTES)
            descriptor = AttachmentDescriptor(
                id=att.id,
                title=att.title,
                caption=att.caption,
                mime_type=att.mime_type or "application/octet-stream",
                file_name=blob.sanitize_file_name(att.file_name or att.storage_key),
            )
            storage_key = att.storage_key

        if not storage_key or not blob.exists(storage_key):
            raise NotFoundError("file not found", {"content_id": attachment_id})

        # Размер проверяем до чтения: заведомо обречённую передачу не начинаем
        file_size = blob.size(storage_key)
        if file_size > self.max_attachment_bytes:
            raise PayloadTooLargeError(
                f"file too large for sync: {format_size(file_size)}",
                {"content_id": attachment_id, "size": file_size, "limit": self.max_attachment_bytes},
            )

        payload = base64.b64encode(blob.get_bytes(storage_key)).decode("ascii")
        return AttachmentSyncRequest(
            descriptor=descriptor,
            essential_attributes=essential,
            payload_base64=payload,
        )
