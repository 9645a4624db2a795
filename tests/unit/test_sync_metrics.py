from __future__ import annotations

from content_replicator.common import metrics
from content_replicator.common.config import ReplicationConfig
from content_replicator.domain.enums import ContentKind
from content_replicator.queue.store import QueueStore


def test_record_sync_outcome_counts_by_result() -> None:
    ok = metrics.SYNC_TASKS_TOTAL.labels(content_kind="document", result="success")
    failed = metrics.SYNC_TASKS_TOTAL.labels(content_kind="document", result="error")
    ok_before, failed_before = ok._value.get(), failed._value.get()

    metrics.record_sync_outcome(content_kind="document", success=True)
    metrics.record_sync_outcome(content_kind="document", success=False)
    metrics.record_sync_outcome(content_kind="document", success=False)

    assert ok._value.get() == ok_before + 1
    assert failed._value.get() == failed_before + 2


def test_refresh_queue_metrics_sets_gauges(sync_settings, replicator_db) -> None:
    sync_settings.sync_max_attempts = 1

    store = QueueStore(ReplicationConfig.from_settings())
    store.enqueue(1, ContentKind.document, 1)
    store.enqueue(2, ContentKind.document, 1)
    task = next(t for t in store.select_eligible(10, ignore_delay=True) if t.content_id == 2)
    store.increment_attempts(task.id)

    metrics.refresh_queue_metrics()

    assert metrics.SYNC_QUEUE_PENDING._value.get() == 1
    assert metrics.SYNC_QUEUE_PARKED._value.get() == 1


def test_refresh_queue_metrics_counts_collection_errors(monkeypatch) -> None:
    def _broken(self):
        raise RuntimeError("db down")

    monkeypatch.setattr(QueueStore, "pending_count", _broken)
    counter = metrics.METRICS_COLLECTION_ERRORS_TOTAL.labels(source="queue_metrics")
    before = counter._value.get()

    metrics.refresh_queue_metrics()

    assert counter._value.get() == before + 1
