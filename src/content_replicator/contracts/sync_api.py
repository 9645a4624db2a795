"""
Контракт протокола репликации (Pydantic-модели).

Назначение:
- одна схема для отправителя (source) и получателя (target)
- ключи верхнего уровня в camelCase, как на проводе
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

SYNC_API_PREFIX = "/sync/v1"
DOCUMENTS_PATH = f"{SYNC_API_PREFIX}/documents"
ATTACHMENTS_PATH = f"{SYNC_API_PREFIX}/attachments"

# Единственные атрибуты вложения, которые уходят на target
ESSENTIAL_ATTACHMENT_ATTRIBUTES = ("_attached_file", "_attachment_metadata")


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# ДОКУМЕНТЫ
# =============================================================================
class DocumentFields(_WireModel):
    """
    Канонические поля документа. id: стабильный идентификатор source.
    """

    id: int = Field(ge=1)
    doc_type: str = "post"
    title: str = ""
    body: str = ""
    excerpt: str = ""
    status: str = "published"
    slug: str = ""
    author_id: int | None = None
    parent_id: int | None = None
    menu_order: int = 0
    comment_status: str = "open"
    password: str = ""
    mime_type: str = ""
    permalink: str = ""
    published_at: datetime | None = None
    modified_at: datetime | None = None


class TermRef(_WireModel):
    slug: str = Field(min_length=1)
    name: str = ""


class DocumentSyncRequest(_WireModel):
    document: DocumentFields
    extended_attributes: dict[str, list[str]] = Field(
        default_factory=dict, alias="extendedAttributes"
    )
    classification_groups: dict[str, list[TermRef]] = Field(
        default_factory=dict, alias="classificationGroups"
    )


# =============================================================================
# ВЛОЖЕНИЯ
# =============================================================================
class AttachmentDescriptor(_WireModel):
    id: int = Field(ge=1)
    title: str = ""
    caption: str = ""
    mime_type: str = "application/octet-stream"
    file_name: str = Field(min_length=1)


class AttachmentSyncRequest(_WireModel):
    descriptor: AttachmentDescriptor
    essential_attributes: dict[str, Any] = Field(
        default_factory=dict, alias="essentialAttributes"
    )
    payload_base64: str = Field(alias="payloadBase64")


# =============================================================================
# ОТВЕТ
# =============================================================================
class SyncResponse(_WireModel):
    success: bool
    id: int | None = None
    identity_preserved: bool = Field(default=True, alias="identityPreserved")
    message: str | None = None
