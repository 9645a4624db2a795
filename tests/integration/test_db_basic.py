from content_replicator.storage.db import db_session, init_db
from content_replicator.storage.models import Document, SyncTask


def test_db_session_context_manager_smoke(replicator_db):
    init_db()  # повторное создание таблиц безопасно

    with db_session() as s:
        assert s is not None
        s.add(SyncTask(content_id=1, content_kind="document", operation="sync", priority=1))
        s.add(Document(id=1, title="smoke"))

    with db_session() as s:
        assert s.query(SyncTask).count() == 1
        task = s.query(SyncTask).one()
        assert task.attempts == 0
        assert task.created_at is not None
        assert s.get(Document, 1).status == "draft"


def test_db_session_rolls_back_on_error(replicator_db):
    try:
        with db_session() as s:
            s.add(Document(id=2, title="rolled back"))
            s.flush()
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    with db_session() as s:
        assert s.get(Document, 2) is None
