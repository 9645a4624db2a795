"""
ORM-модели базы данных.

Назначение:
- очередь задач репликации и журнал результатов
- локальное хранилище контента (документы, вложения, классификация)
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from content_replicator.common.time import db_now


# =============================================================================
# BASE
# =============================================================================
class Base(DeclarativeBase):
    pass


# =============================================================================
# SYNC QUEUE / LOG
# =============================================================================
class SyncTask(Base):
    """
    Задача репликации. Не больше одной на (content_id, content_kind, operation).
    """

    __tablename__ = "sync_queue"
    __table_args__ = (
        UniqueConstraint(
            "content_id", "content_kind", "operation", name="uq_sync_queue_content_op"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    content_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    operation: Mapped[str] = mapped_column(String(20), nullable=False, default="sync")
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=1, index=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=db_now, nullable=False)


class SyncLogEntry(Base):
    """
    Запись журнала синхронизации (append-only).
    """

    __tablename__ = "sync_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    content_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    operation: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, default="", nullable=False)
    synced_at: Mapped[datetime] = mapped_column(DateTime, default=db_now, nullable=False)


# =============================================================================
# DOCUMENTS
# =============================================================================
class Document(Base):
    """
    Документ. source_id заполнен у строк, пришедших репликацией.
    """

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    source_id: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True)

    doc_type: Mapped[str] = mapped_column(String(20), default="post", nullable=False)
    title: Mapped[str] = mapped_column(Text, default="", nullable=False)
    body: Mapped[str] = mapped_column(Text, default="", nullable=False)
    excerpt: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False)
    slug: Mapped[str] = mapped_column(String(200), default="", nullable=False)

    author_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    parent_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    menu_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comment_status: Mapped[str] = mapped_column(String(20), default="open", nullable=False)
    password: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    permalink: Mapped[str] = mapped_column(String(500), default="", nullable=False)

    published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    modified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    attributes: Mapped[list[DocumentAttribute]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentAttribute.id",
    )


class DocumentAttribute(Base):
    """
    Расширенный атрибут документа. Ключ может повторяться (многозначные атрибуты).
    """

    __tablename__ = "document_attributes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[int] = mapped_column(
        ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[str] = mapped_column(Text, default="", nullable=False)

    document: Mapped[Document] = relationship(back_populates="attributes")


class ClassificationTerm(Base):
    """
    Термин классификации (категория/тег/...), стабильно идентифицируется slug в схеме.
    """

    __tablename__ = "classification_terms"
    __table_args__ = (UniqueConstraint("scheme", "slug", name="uq_classification_terms_scheme_slug"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scheme: Mapped[str] = mapped_column(String(64), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="", nullable=False)


class DocumentTerm(Base):
    __tablename__ = "document_terms"

    document_id: Mapped[int] = mapped_column(
        ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True
    )
    term_id: Mapped[int] = mapped_column(
        ForeignKey("classification_terms.id", ondelete="CASCADE"), primary_key=True
    )


# =============================================================================
# ATTACHMENTS
# =============================================================================
class Attachment(Base):
    __tablename__ = "attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    source_id: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True)

    title: Mapped[str] = mapped_column(Text, default="", nullable=False)
    caption: Mapped[str] = mapped_column(Text, default="", nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    storage_key: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=db_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=db_now, onupdate=db_now, nullable=False
    )

    attributes: Mapped[list[AttachmentAttribute]] = relationship(
        back_populates="attachment",
        cascade="all, delete-orphan",
    )


class AttachmentAttribute(Base):
    __tablename__ = "attachment_attributes"
    __table_args__ = (
        UniqueConstraint("attachment_id", "key", name="uq_attachment_attributes_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    attachment_id: Mapped[int] = mapped_column(
        ForeignKey("attachments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)

    attachment: Mapped[Attachment] = relationship(back_populates="attributes")
