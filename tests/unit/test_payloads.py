from __future__ import annotations

import base64

import pytest

from content_replicator.common.errors import NotFoundError, PayloadTooLargeError
from content_replicator.replication.payloads import ContentReader, format_size
from content_replicator.storage import blob
from content_replicator.storage.db import db_session
from content_replicator.storage.models import (
    Attachment,
    AttachmentAttribute,
    ClassificationTerm,
    Document,
    DocumentAttribute,
    DocumentTerm,
)

MB = 1024 * 1024


def _reader() -> ContentReader:
    return ContentReader(max_attachment_bytes=10 * MB)


def _seed_attachment(att_id: int, data: bytes, *, file_name: str = "photo one.png") -> None:
    key = blob.put_bytes(f"media/{att_id}/{blob.sanitize_file_name(file_name)}", data)
    with db_session() as s:
        s.add(
            Attachment(
                id=att_id,
                title="Photo",
                mime_type="image/png",
                file_name=file_name,
                storage_key=key,
                file_size=len(data),
            )
        )
        s.flush()
        s.add(AttachmentAttribute(attachment_id=att_id, key="_attached_file", value=key))
        s.add(AttachmentAttribute(attachment_id=att_id, key="_attachment_metadata", value={"w": 1}))
        s.add(AttachmentAttribute(attachment_id=att_id, key="_edit_lock", value="123:1"))


def test_format_size() -> None:
    assert format_size(512) == "512 B"
    assert format_size(11 * MB) == "11.0 MB"
    assert format_size(1536) == "1.5 KB"


def test_document_request_collects_attributes_and_terms(replicator_db) -> None:
    with db_session() as s:
        s.add(Document(id=42, title="Hello", body="<p>x</p>", status="published", slug="hello"))
        s.add(ClassificationTerm(scheme="category", slug="news", name="News"))
        s.add(ClassificationTerm(scheme="tag", slug="python", name="Python"))
        s.flush()
        s.add(DocumentAttribute(document_id=42, key="color", value="red"))
        s.add(DocumentAttribute(document_id=42, key="color", value="blue"))
        s.add(DocumentAttribute(document_id=42, key="subtitle", value="sub"))
        for term in s.query(ClassificationTerm).all():
            s.add(DocumentTerm(document_id=42, term_id=term.id))

    req = _reader().build_document_request(42)

    assert req.document.id == 42
    assert req.document.title == "Hello"
    assert req.extended_attributes == {"color": ["red", "blue"], "subtitle": ["sub"]}
    assert {k: [t.slug for t in v] for k, v in req.classification_groups.items()} == {
        "category": ["news"],
        "tag": ["python"],
    }


def test_missing_document_is_not_found(replicator_db) -> None:
    with pytest.raises(NotFoundError) as exc:
        _reader().build_document_request(404)
    assert exc.value.message == "document not found"


def test_attachment_request_keeps_only_essential_attributes(replicator_db, uploads_dir) -> None:
    _seed_attachment(5, b"\x89PNG fake bytes")

    req = _reader().build_attachment_request(5)

    assert req.descriptor.id == 5
    assert req.descriptor.file_name == "photo-one.png"
    assert set(req.essential_attributes) == {"_attached_file", "_attachment_metadata"}
    assert base64.b64decode(req.payload_base64) == b"\x89PNG fake bytes"


def test_attachment_over_limit_is_rejected(replicator_db, uploads_dir) -> None:
    _seed_attachment(6, b"\0" * (11 * MB))

    with pytest.raises(PayloadTooLargeError) as exc:
        _reader().build_attachment_request(6)
    assert exc.value.message == "file too large for sync: 11.0 MB"


def test_attachment_without_file_is_not_found(replicator_db, uploads_dir) -> None:
    _seed_attachment(8, b"data")
    with db_session() as s:
        key = s.get(Attachment, 8).storage_key
    blob.delete(key)

    with pytest.raises(NotFoundError) as exc:
        _reader().build_attachment_request(8)
    assert exc.value.message == "file not found"

    with pytest.raises(NotFoundError) as exc:
        _reader().build_attachment_request(9)
    assert exc.value.message == "attachment not found"
