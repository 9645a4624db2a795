"""
Инициальная миграция.

Создаёт таблицы:
- sync_queue, sync_log
- documents, document_attributes, classification_terms, document_terms
- attachments, attachment_attributes
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "sync_queue",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("content_id", sa.Integer(), nullable=False),
        sa.Column("content_kind", sa.String(length=20), nullable=False),
        sa.Column("operation", sa.String(length=20), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "content_id", "content_kind", "operation", name="uq_sync_queue_content_op"
        ),
    )
    op.create_index("ix_sync_queue_content_id", "sync_queue", ["content_id"])
    op.create_index("ix_sync_queue_priority", "sync_queue", ["priority"])

    op.create_table(
        "sync_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("content_id", sa.Integer(), nullable=False),
        sa.Column("content_kind", sa.String(length=20), nullable=False),
        sa.Column("operation", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("synced_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_sync_log_content_id", "sync_log", ["content_id"])

    op.create_table(
        "documents",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("source_id", sa.Integer(), nullable=True, unique=True),
        sa.Column("doc_type", sa.String(length=20), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("excerpt", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("slug", sa.String(length=200), nullable=False),
        sa.Column("author_id", sa.Integer(), nullable=True),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        sa.Column("menu_order", sa.Integer(), nullable=False),
        sa.Column("comment_status", sa.String(length=20), nullable=False),
        sa.Column("password", sa.String(length=255), nullable=False),
        sa.Column("mime_type", sa.String(length=100), nullable=False),
        sa.Column("permalink", sa.String(length=500), nullable=False),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        sa.Column("modified_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "document_attributes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "document_id",
            sa.Integer(),
            sa.ForeignKey("documents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
    )
    op.create_index("ix_document_attributes_document_id", "document_attributes", ["document_id"])

    op.create_table(
        "classification_terms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("scheme", sa.String(length=64), nullable=False),
        sa.Column("slug", sa.String(length=200), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.UniqueConstraint("scheme", "slug", name="uq_classification_terms_scheme_slug"),
    )

    op.create_table(
        "document_terms",
        sa.Column(
            "document_id",
            sa.Integer(),
            sa.ForeignKey("documents.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "term_id",
            sa.Integer(),
            sa.ForeignKey("classification_terms.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    op.create_table(
        "attachments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("source_id", sa.Integer(), nullable=True, unique=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("caption", sa.Text(), nullable=False),
        sa.Column("mime_type", sa.String(length=100), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("storage_key", sa.String(length=500), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "attachment_attributes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "attachment_id",
            sa.Integer(),
            sa.ForeignKey("attachments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.UniqueConstraint("attachment_id", "key", name="uq_attachment_attributes_key"),
    )
    op.create_index(
        "ix_attachment_attributes_attachment_id", "attachment_attributes", ["attachment_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_attachment_attributes_attachment_id", table_name="attachment_attributes")
    op.drop_table("attachment_attributes")
    op.drop_table("attachments")
    op.drop_table("document_terms")
    op.drop_table("classification_terms")
    op.drop_index("ix_document_attributes_document_id", table_name="document_attributes")
    op.drop_table("document_attributes")
    op.drop_table("documents")
    op.drop_index("ix_sync_log_content_id", table_name="sync_log")
    op.drop_table("sync_log")
    op.drop_index("ix_sync_queue_priority", table_name="sync_queue")
    op.drop_index("ix_sync_queue_content_id", table_name="sync_queue")
    op.drop_table("sync_queue")
