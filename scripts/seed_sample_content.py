"""
Сидинг тестового контента на узле source.
Создаёт документ с атрибутами и терминами, вложение с файлом и ставит обе задачи в очередь.
"""

from content_replicator.common.config import ReplicationConfig
from content_replicator.domain.enums import ContentKind, ContentStatus
from content_replicator.queue.store import QueueStore
from content_replicator.services.intake import EventIntake
from content_replicator.storage import blob
from content_replicator.storage.db import db_session, init_db
from content_replicator.storage.models import (
    Attachment,
    AttachmentAttribute,
    ClassificationTerm,
    Document,
    DocumentAttribute,
    DocumentTerm,
)
from content_replicator.storage.repositories import AttachmentRepository, DocumentRepository

init_db()

with db_session() as s:
    doc_id = DocumentRepository(s).next_id()
    att_id = AttachmentRepository(s).next_id()

    s.add(Document(id=doc_id, title="Seed document", body="<p>Hello</p>", status="published", slug="seed"))
    s.add(DocumentAttribute(document_id=doc_id, key="subtitle", value="seeded"))
    term = ClassificationTerm(scheme="category", slug="news", name="News")
    s.add(term)
    s.flush()
    s.add(DocumentTerm(document_id=doc_id, term_id=term.id))

    key = blob.put_bytes(f"seed/{att_id}/readme.txt", b"seed attachment\n")
    s.add(
        Attachment(
            id=att_id,
            title="Seed file",
            mime_type="text/plain",
            file_name="readme.txt",
            storage_key=key,
            file_size=blob.size(key),
        )
    )
    s.add(AttachmentAttribute(attachment_id=att_id, key="_attached_file", value=key))

config = ReplicationConfig.from_settings()
intake = EventIntake(config, QueueStore(config))
intake.on_content_changed(doc_id, ContentKind.document, ContentStatus.published.value)
intake.on_attachment_uploaded(att_id)
print("Seeded document:", doc_id, "attachment:", att_id)
