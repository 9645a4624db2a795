from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from content_replicator.common.errors import (
    CycleInProgressError,
    NotFoundError,
    PayloadTooLargeError,
    StoreUnavailableError,
)
from content_replicator.domain.enums import ContentKind, NodeRole
from content_replicator.queue.dispatcher import Dispatcher
from content_replicator.queue.lock import LocalCycleLock
from content_replicator.queue.scheduler import Scheduler
from content_replicator.queue.store import QueueStore
from content_replicator.replication.client import ReplicationResult
from content_replicator.replication.payloads import ContentReader
from content_replicator.storage import blob
from content_replicator.storage.db import db_session
from content_replicator.storage.models import Attachment

T0 = datetime(2026, 3, 1, 12, 0, 0)


class _FakeClient:
    def __init__(self, results: list[ReplicationResult] | None = None, *, configured: bool = True):
        self.results = list(results or [])
        self.configured = configured
        self.sent: list[tuple[str, int]] = []

    def _next(self) -> ReplicationResult:
        if self.results:
            return self.results.pop(0)
        return ReplicationResult(success=True, message="Document synced successfully", target_id=1)

    def replicate_document(self, request) -> ReplicationResult:
        self.sent.append(("document", request))
        return self._next()

    def replicate_attachment(self, request) -> ReplicationResult:
        self.sent.append(("attachment", request))
        return self._next()


class _FakeReader:
    def __init__(self, errors: dict[int, Exception] | None = None) -> None:
        self.errors = errors or {}
        self.calls: list[int] = []

    def build_document_request(self, document_id: int) -> int:
        self.calls.append(document_id)
        if document_id in self.errors:
            raise self.errors[document_id]
        return document_id

    def build_attachment_request(self, attachment_id: int) -> int:
        self.calls.append(attachment_id)
        if attachment_id in self.errors:
            raise self.errors[attachment_id]
        return attachment_id


def _dispatcher(config, *, client=None, reader=None, store=None, lock=None) -> Dispatcher:
    return Dispatcher(
        config=config,
        store=store or QueueStore(config),
        client=client or _FakeClient(),
        scheduler=Scheduler(config),
        lock=lock or LocalCycleLock(),
        content_reader=reader or _FakeReader(),
    )


def test_successful_sync_removes_task_and_logs(replicator_db, source_config) -> None:
    store = QueueStore(source_config)
    store.enqueue(42, ContentKind.document, 1, now=T0)
    client = _FakeClient()

    outcomes = _dispatcher(source_config, client=client, store=store).run_cycle(
        now=T0 + timedelta(minutes=6)
    )

    assert len(outcomes) == 1
    assert outcomes[0].content_id == 42
    assert outcomes[0].success is True
    assert client.sent == [("document", 42)]
    assert store.pending_count() == 0
    log = store.recent_log(1)[0]
    assert (log.content_id, log.status, log.message) == (42, "success", "Document synced successfully")


def test_fresh_task_waits_for_delay_on_cron_path(replicator_db, source_config) -> None:
    store = QueueStore(source_config)
    store.enqueue(42, ContentKind.document, 1, now=T0)
    client = _FakeClient()
    dispatcher = _dispatcher(source_config, client=client, store=store)

    assert dispatcher.run_cycle(now=T0 + timedelta(minutes=1)) == []
    assert client.sent == []

    assert len(dispatcher.run_cycle(ignore_delay=True, now=T0 + timedelta(minutes=1))) == 1


def test_failures_count_attempts_until_parked(replicator_db, source_config) -> None:
    store = QueueStore(source_config)
    store.enqueue(9, ContentKind.document, 1, now=T0)
    client = _FakeClient([ReplicationResult.failure("HTTP 500")] * 3)
    dispatcher = _dispatcher(source_config, client=client, store=store)

    for attempt in range(1, 4):
        outcomes = dispatcher.run_cycle(ignore_delay=True)
        assert [o.success for o in outcomes] == [False]
        assert outcomes[0].message == "HTTP 500"
        assert store.status_for(9).attempts == attempt

    assert dispatcher.run_cycle(ignore_delay=True) == []
    assert len(client.sent) == 3
    assert store.pending_count() == 0
    assert store.parked_count() == 1
    assert [r.status for r in store.recent_log(10)] == ["error", "error", "error"]


def test_payload_errors_become_failures(replicator_db, source_config) -> None:
    store = QueueStore(source_config)
    store.enqueue(1, ContentKind.document, 1, now=T0)
    store.enqueue(2, ContentKind.attachment, 2, now=T0)
    reader = _FakeReader(
        {
            1: NotFoundError("document not found"),
            2: PayloadTooLargeError("file too large for sync: 11.0 MB"),
        }
    )
    client = _FakeClient()

    outcomes = _dispatcher(source_config, client=client, reader=reader, store=store).run_cycle(
        ignore_delay=True
    )

    assert [(o.content_id, o.success, o.message) for o in outcomes] == [
        (1, False, "document not found"),
        (2, False, "file too large for sync: 11.0 MB"),
    ]
    assert client.sent == []
    assert store.status_for(2, ContentKind.attachment).attempts == 1


def test_oversized_attachment_is_parked_after_max_attempts(replicator_db, uploads_dir, source_config) -> None:
    data = b"\0" * (11 * 1024 * 1024)
    key = blob.put_bytes("media/12/big.bin", data)
    with db_session() as s:
        s.add(Attachment(id=12, title="Big", file_name="big.bin", storage_key=key, file_size=len(data)))

    store = QueueStore(source_config)
    store.enqueue(12, ContentKind.attachment, 2, now=T0)
    client = _FakeClient()
    reader = ContentReader(max_attachment_bytes=source_config.max_attachment_bytes)
    dispatcher = _dispatcher(source_config, client=client, reader=reader, store=store)

    for attempt in range(1, 4):
        outcomes = dispatcher.run_cycle(ignore_delay=True)
        assert [(o.content_id, o.success, o.message) for o in outcomes] == [
            (12, False, "file too large for sync: 11.0 MB")
        ]
        assert store.status_for(12, ContentKind.attachment).attempts == attempt

    assert dispatcher.run_cycle(ignore_delay=True) == []
    assert client.sent == []
    assert store.parked_count() == 1
    assert [t.content_id for t in store.list_parked(10)] == [12]
    log = store.recent_log(1)[0]
    assert (log.content_id, log.content_kind, log.status, log.message) == (
        12,
        "attachment",
        "error",
        "file too large for sync: 11.0 MB",
    )


def test_unexpected_error_does_not_stop_cycle(replicator_db, source_config) -> None:
    store = QueueStore(source_config)
    store.enqueue(1, ContentKind.document, 1, now=T0)
    store.enqueue(2, ContentKind.document, 1, now=T0 + timedelta(seconds=1))
    reader = _FakeReader({1: RuntimeError("boom")})

    outcomes = _dispatcher(source_config, reader=reader, store=store).run_cycle(ignore_delay=True)

    assert [(o.content_id, o.success) for o in outcomes] == [(1, False), (2, True)]
    assert outcomes[0].message == "boom"
    assert store.pending_count() == 1


def test_missing_configuration_skips_payload(replicator_db, source_config) -> None:
    store = QueueStore(source_config)
    store.enqueue(3, ContentKind.document, 1, now=T0)
    reader = _FakeReader()

    outcomes = _dispatcher(
        source_config,
        client=_FakeClient(configured=False),
        reader=reader,
        store=store,
    ).run_cycle(ignore_delay=True)

    assert outcomes[0].message == "missing configuration"
    assert reader.calls == []
    assert store.status_for(3).attempts == 1


def test_target_role_is_noop(source_config) -> None:
    class _ExplodingStore:
        def __getattr__(self, name):
            raise AssertionError(f"store must not be touched: {name}")

    config = replace(source_config, role=NodeRole.target)
    dispatcher = _dispatcher(config, store=_ExplodingStore())
    assert dispatcher.run_cycle(ignore_delay=True) == []


def test_concurrent_trigger_is_dropped(replicator_db, source_config) -> None:
    lock = LocalCycleLock()
    token = lock.try_acquire()
    assert token is not None

    dispatcher = _dispatcher(source_config, lock=lock)
    with pytest.raises(CycleInProgressError):
        dispatcher.run_cycle(ignore_delay=True)

    lock.release(token)
    assert dispatcher.run_cycle(ignore_delay=True) == []


def test_store_failure_aborts_cycle_and_releases_lock(replicator_db, source_config) -> None:
    class _FailingRemoveStore(QueueStore):
        def remove(self, task_id: int) -> bool:
            raise StoreUnavailableError(details={"op": "remove"})

    store = _FailingRemoveStore(source_config)
    store.enqueue(1, ContentKind.document, 1, now=T0)
    store.enqueue(2, ContentKind.document, 1, now=T0 + timedelta(seconds=1))
    client = _FakeClient()
    lock = LocalCycleLock()

    with pytest.raises(StoreUnavailableError):
        _dispatcher(source_config, client=client, store=store, lock=lock).run_cycle(
            ignore_delay=True
        )

    assert len(client.sent) == 1
    token = lock.try_acquire()
    assert token is not None
    lock.release(token)
