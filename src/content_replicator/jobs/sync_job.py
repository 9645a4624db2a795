"""
Sync job.

Назначение:
- сборка диспетчера из настроек процесса
- один прогон цикла синхронизации (worker_sync / ручной запуск)
"""

from __future__ import annotations

from content_replicator.common.config import ReplicationConfig
from content_replicator.common.logging import get_project_logger
from content_replicator.queue.dispatcher import Dispatcher, SyncOutcome
from content_replicator.queue.lock import build_cycle_lock
from content_replicator.queue.scheduler import Scheduler
from content_replicator.queue.store import QueueStore
from content_replicator.replication.client import ReplicationClient
from content_replicator.replication.payloads import ContentReader

log = get_project_logger()

_dispatcher: Dispatcher | None = None


def build_dispatcher(config: ReplicationConfig | None = None) -> Dispatcher:
    config = config or ReplicationConfig.from_settings()
    return Dispatcher(
        config=config,
        store=QueueStore(config),
        client=ReplicationClient(config),
        scheduler=Scheduler(config),
        lock=build_cycle_lock(),
        content_reader=ContentReader(max_attachment_bytes=config.max_attachment_bytes),
    )


def get_dispatcher() -> Dispatcher:
    """
    Один диспетчер на процесс: локальная блокировка должна быть общей
    для cron-цикла и ручного запуска.
    """
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = build_dispatcher()
    return _dispatcher


def reset_dispatcher() -> None:
    global _dispatcher
    _dispatcher = None


def run(*, ignore_delay: bool = False) -> list[SyncOutcome]:
    dispatcher = get_dispatcher()
    if not dispatcher.config.is_source:
        log.info("sync_job_skipped", extra={"payload": {"reason": "role_target"}})
        return []

    outcomes = dispatcher.run_cycle(ignore_delay=ignore_delay)
    if outcomes:
        log.info(
            "sync_job_finished",
            extra={
                "payload": {
                    "processed": len(outcomes),
                    "failed": sum(1 for o in outcomes if not o.success),
                }
            },
        )
    return outcomes
