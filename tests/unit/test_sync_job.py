from __future__ import annotations

import pytest

from content_replicator.common.errors import CycleInProgressError
from content_replicator.jobs import sync_job
from content_replicator.queue.lock import LocalCycleLock


@pytest.fixture()
def fresh_dispatcher():
    sync_job.reset_dispatcher()
    try:
        yield
    finally:
        sync_job.reset_dispatcher()


def test_build_dispatcher_from_settings(sync_settings, fresh_dispatcher) -> None:
    sync_settings.sync_role = "source"
    sync_settings.sync_batch_size = 4
    sync_settings.sync_lock_mode = "local"

    dispatcher = sync_job.get_dispatcher()

    assert dispatcher is sync_job.get_dispatcher()
    assert dispatcher.config.batch_size == 4
    assert dispatcher.scheduler.batch_size == 4
    assert isinstance(dispatcher.lock, LocalCycleLock)
    assert dispatcher.content_reader.max_attachment_bytes == dispatcher.config.max_attachment_bytes


def test_run_skips_on_target(sync_settings, fresh_dispatcher) -> None:
    sync_settings.sync_role = "target"
    assert sync_job.run() == []


def test_run_processes_queue(sync_settings, replicator_db, fresh_dispatcher, monkeypatch) -> None:
    sync_settings.sync_role = "source"
    dispatcher = sync_job.get_dispatcher()
    calls: list[bool] = []

    def _fake_cycle(*, ignore_delay: bool = False, now=None):
        calls.append(ignore_delay)
        return []

    monkeypatch.setattr(dispatcher, "run_cycle", _fake_cycle)
    assert sync_job.run(ignore_delay=True) == []
    assert calls == [True]


def test_run_propagates_busy_cycle(sync_settings, replicator_db, fresh_dispatcher) -> None:
    sync_settings.sync_role = "source"
    dispatcher = sync_job.get_dispatcher()
    token = dispatcher.lock.try_acquire()
    try:
        with pytest.raises(CycleInProgressError):
            sync_job.run()
    finally:
        dispatcher.lock.release(token)
