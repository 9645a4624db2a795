"""
Репозитории (DAO слой).

Правила:
- Никакой бизнес-логики
- Только CRUD и запросы
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import delete, desc, func, select, update
from sqlalchemy.orm import Session

from .models import (
    Attachment,
    AttachmentAttribute,
    ClassificationTerm,
    Document,
    DocumentAttribute,
    DocumentTerm,
    SyncLogEntry,
    SyncTask,
)


def _bounded(limit: int, upper: int = 500) -> int:
    return max(1, min(int(limit), upper))


def _next_id(session: Session, model) -> int:
    current = session.execute(select(func.max(model.id))).scalar()
    return int(current or 0) + 1


# =============================================================================
# SYNC QUEUE REPOSITORY
# =============================================================================
class SyncTaskRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, task_id: int) -> SyncTask | None:
        return self.session.get(SyncTask, task_id)

    def find(self, *, content_id: int, content_kind: str, operation: str) -> SyncTask | None:
        return (
            self.session.query(SyncTask)
            .filter(
                SyncTask.content_id == content_id,
                SyncTask.content_kind == content_kind,
                SyncTask.operation == operation,
            )
            .one_or_none()
        )

    def add(self, task: SyncTask) -> None:
        self.session.add(task)

    def list_eligible(
        self,
        *,
        max_attempts: int,
        created_before: datetime | None,
        limit: int,
    ) -> list[SyncTask]:
        query = self.session.query(SyncTask).filter(SyncTask.attempts < max_attempts)
        if created_before is not None:
            query = query.filter(SyncTask.created_at <= created_before)
        return (
            query.order_by(SyncTask.priority, SyncTask.created_at, SyncTask.id)
            .limit(_bounded(limit))
            .all()
        )

    def delete(self, task_id: int) -> bool:
        result = self.session.execute(delete(SyncTask).where(SyncTask.id == task_id))
        return bool(result.rowcount)

    def increment_attempts(self, task_id: int) -> bool:
        # Атомарно на стороне БД, без read-modify-write
        result = self.session.execute(
            update(SyncTask)
            .where(SyncTask.id == task_id)
            .values(attempts=SyncTask.attempts + 1)
        )
        return bool(result.rowcount)

    def count_pending(self, *, max_attempts: int) -> int:
        return int(
            self.session.query(func.count(SyncTask.id))
            .filter(SyncTask.attempts < max_attempts)
            .scalar()
            or 0
        )

    def count_parked(self, *, max_attempts: int) -> int:
        return int(
            self.session.query(func.count(SyncTask.id))
            .filter(SyncTask.attempts >= max_attempts)
            .scalar()
            or 0
        )

    def list_parked(self, *, max_attempts: int, limit: int = 100) -> list[SyncTask]:
        return (
            self.session.query(SyncTask)
            .filter(SyncTask.attempts >= max_attempts)
            .order_by(SyncTask.created_at, SyncTask.id)
            .limit(_bounded(limit))
            .all()
        )

    def delete_parked(self, *, max_attempts: int) -> int:
        result = self.session.execute(delete(SyncTask).where(SyncTask.attempts >= max_attempts))
        return int(result.rowcount or 0)

    def list_for_content(self, *, content_id: int, content_kind: str | None = None) -> list[SyncTask]:
        query = self.session.query(SyncTask).filter(SyncTask.content_id == content_id)
        if content_kind:
            query = query.filter(SyncTask.content_kind == content_kind)
        return query.order_by(SyncTask.id).all()


# =============================================================================
# SYNC LOG REPOSITORY
# =============================================================================
class SyncLogRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entry: SyncLogEntry) -> SyncLogEntry:
        self.session.add(entry)
        return entry

    def list_recent(
        self,
        *,
        limit: int = 10,
        content_id: int | None = None,
        content_kind: str | None = None,
    ) -> list[SyncLogEntry]:
        query = self.session.query(SyncLogEntry)
        if content_id is not None:
            query = query.filter(SyncLogEntry.content_id == content_id)
        if content_kind:
            query = query.filter(SyncLogEntry.content_kind == content_kind)
        return (
            query.order_by(desc(SyncLogEntry.synced_at), desc(SyncLogEntry.id))
            .limit(_bounded(limit))
            .all()
        )


# =============================================================================
# DOCUMENT REPOSITORY
# =============================================================================
class DocumentRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, document_id: int) -> Document | None:
        return self.session.get(Document, document_id)

    def get_by_source_id(self, source_id: int) -> Document | None:
        return self.session.query(Document).filter(Document.source_id == source_id).one_or_none()

    def next_id(self) -> int:
        return _next_id(self.session, Document)

    def add(self, document: Document) -> None:
        self.session.add(document)

    def list_attributes(self, document_id: int) -> list[DocumentAttribute]:
        return (
            self.session.query(DocumentAttribute)
            .filter(DocumentAttribute.document_id == document_id)
            .order_by(DocumentAttribute.id)
            .all()
        )

    def replace_attributes(self, document_id: int, attributes: dict[str, list[str]]) -> int:
        """
        Полная замена: старые значения удаляются, новые вставляются как есть.
        """
        self.session.execute(
            delete(DocumentAttribute).where(DocumentAttribute.document_id == document_id)
        )
        inserted = 0
        for key, values in attributes.items():
            for value in values:
                self.session.add(DocumentAttribute(document_id=document_id, key=key, value=value))
                inserted += 1
        self.session.flush()
        return inserted

    def list_terms(self, document_id: int) -> list[ClassificationTerm]:
        return (
            self.session.query(ClassificationTerm)
            .join(DocumentTerm, DocumentTerm.term_id == ClassificationTerm.id)
            .filter(DocumentTerm.document_id == document_id)
            .order_by(ClassificationTerm.scheme, ClassificationTerm.slug)
            .all()
        )


# =============================================================================
# CLASSIFICATION TERM REPOSITORY
# =============================================================================
class ClassificationTermRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_slug(self, *, scheme: str, slug: str) -> ClassificationTerm | None:
        return (
            self.session.query(ClassificationTerm)
            .filter(ClassificationTerm.scheme == scheme, ClassificationTerm.slug == slug)
            .one_or_none()
        )

    def ensure(self, *, scheme: str, slug: str, name: str) -> ClassificationTerm:
        """
        Идемпотентно: существующий термин по (scheme, slug) не переименовывается.
        """
        term = self.get_by_slug(scheme=scheme, slug=slug)
        if term is not None:
            return term
        term = ClassificationTerm(scheme=scheme, slug=slug, name=name or slug)
        self.session.add(term)
        self.session.flush()
        return term

    def set_document_terms(self, *, document_id: int, scheme: str, term_ids: Iterable[int]) -> None:
        scheme_term_ids = select(ClassificationTerm.id).where(ClassificationTerm.scheme == scheme)
        self.session.execute(
            delete(DocumentTerm).where(
                DocumentTerm.document_id == document_id,
                DocumentTerm.term_id.in_(scheme_term_ids),
            )
        )
        for term_id in dict.fromkeys(term_ids):
            self.session.add(DocumentTerm(document_id=document_id, term_id=term_id))
        self.session.flush()


# =============================================================================
# ATTACHMENT REPOSITORY
# =============================================================================
class AttachmentRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, attachment_id: int) -> Attachment | None:
        return self.session.get(Attachment, attachment_id)

    def get_by_source_id(self, source_id: int) -> Attachment | None:
        return (
            self.session.query(Attachment).filter(Attachment.source_id == source_id).one_or_none()
        )

    def next_id(self) -> int:
        return _next_id(self.session, Attachment)

    def add(self, attachment: Attachment) -> None:
        self.session.add(attachment)

    def get_attributes(self, attachment_id: int, keys: Iterable[str] | None = None) -> dict[str, Any]:
        query = self.session.query(AttachmentAttribute).filter(
            AttachmentAttribute.attachment_id == attachment_id
        )
        if keys is not None:
            query = query.filter(AttachmentAttribute.key.in_(list(keys)))
        return {a.key: a.value for a in query.order_by(AttachmentAttribute.id).all()}

    def set_attribute(self, attachment_id: int, key: str, value: Any) -> AttachmentAttribute:
        existing = (
            self.session.query(AttachmentAttribute)
            .filter(
                AttachmentAttribute.attachment_id == attachment_id,
                AttachmentAttribute.key == key,
            )
            .one_or_none()
        )
        if existing is None:
            existing = AttachmentAttribute(attachment_id=attachment_id, key=key, value=value)
            self.session.add(existing)
        else:
            existing.value = value
        self.session.flush()
        return existing
