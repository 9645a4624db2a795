"""
Диспетчер цикла синхронизации.

Назначение:
- один цикл = одна пачка задач от планировщика, строго последовательно
- успех: задача удаляется, в журнал пишется success
- неуспех: attempts += 1, в журнал пишется error (задача останется до max_attempts)
- single-flight: параллельный триггер отбрасывается (CycleInProgressError)

Ошибки отдельной задачи (нет контента, слишком большой файл, отказ target,
сбой сети) превращаются в данные. Цикл прерывает только StoreUnavailableError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from content_replicator.common.config import ReplicationConfig
from content_replicator.common.errors import AppError, CycleInProgressError, StoreUnavailableError
from content_replicator.common.logging import get_sync_logger
from content_replicator.common.metrics import (
    record_cycle_dropped,
    record_sync_outcome,
    track_cycle_latency,
)
from content_replicator.domain.enums import ContentKind, LogStatus, SyncOperation
from content_replicator.queue.lock import CycleLock, single_flight
from content_replicator.queue.scheduler import Scheduler
from content_replicator.queue.store import LogEntry, QueuedTask, QueueStore
from content_replicator.replication.client import ReplicationClient, ReplicationResult
from content_replicator.replication.payloads import ContentReader

log = get_sync_logger()


@dataclass(frozen=True)
class SyncOutcome:
    content_id: int
    content_kind: ContentKind
    operation: SyncOperation
    success: bool
    message: str


class Dispatcher:
    def __init__(
        self,
        config: ReplicationConfig,
        store: QueueStore,
        client: ReplicationClient,
        scheduler: Scheduler,
        lock: CycleLock,
        content_reader: ContentReader,
    ) -> None:
        self.config = config
        self.store = store
        self.client = client
        self.scheduler = scheduler
        self.lock = lock
        self.content_reader = content_reader

    def run_cycle(
        self,
        *,
        ignore_delay: bool = False,
        now: datetime | None = None,
    ) -> list[SyncOutcome]:
        if not self.config.is_source:
            return []

        trigger = "manual" if ignore_delay else "cron"
        try:
            with single_flight(self.lock, trigger=trigger), track_cycle_latency(trigger):
                return self._run_locked(ignore_delay=ignore_delay, now=now, trigger=trigger)
        except CycleInProgressError:
            record_cycle_dropped(trigger=trigger)
            raise

    def _run_locked(
        self,
        *,
        ignore_delay: bool,
        now: datetime | None,
        trigger: str,
    ) -> list[SyncOutcome]:
        tasks = self.scheduler.next_batch(self.store, ignore_delay=ignore_delay, now=now)
        if not tasks:
            return []

        log.info(
            "sync_cycle_started",
            extra={"payload": {"trigger": trigger, "tasks": len(tasks)}},
        )
        outcomes = [self._process(task, now=now) for task in tasks]
        log.info(
            "sync_cycle_finished",
            extra={
                "payload": {
                    "trigger": trigger,
                    "tasks": len(outcomes),
                    "succeeded": sum(1 for o in outcomes if o.success),
                    "failed": sum(1 for o in outcomes if not o.success),
                }
            },
        )
        return outcomes

    def _replicate(self, task: QueuedTask) -> ReplicationResult:
        if task.operation != SyncOperation.sync:
            return ReplicationResult.failure(f"operation not supported: {task.operation.value}")
        if not self.client.configured:
            log.error(
                "sync_not_configured",
                extra={"payload": {"content_id": task.content_id, "content_kind": task.content_kind.value}},
            )
            return ReplicationResult.failure("missing configuration")

        if task.content_kind == ContentKind.attachment:
            return self.client.replicate_attachment(
                self.content_reader.build_attachment_request(task.content_id)
            )
        return self.client.replicate_document(
            self.content_reader.build_document_request(task.content_id)
        )

    def _process(self, task: QueuedTask, *, now: datetime | None) -> SyncOutcome:
        try:
            result = self._replicate(task)
        except StoreUnavailableError:
            raise
        except AppError as e:
            result = ReplicationResult.failure(e.message)
        except Exception as e:
            log.exception(
                "sync_task_unexpected_error",
                extra={"payload": {"task_id": task.id, "content_id": task.content_id}},
            )
            result = ReplicationResult.failure(str(e)[:500] or e.__class__.__name__)

        if result.success:
            self.store.remove(task.id)
        else:
            self.store.increment_attempts(task.id)
        self.store.append(
            LogEntry(
                content_id=task.content_id,
                content_kind=task.content_kind,
                operation=task.operation,
                status=LogStatus.success if result.success else LogStatus.error,
                message=result.message,
                synced_at=now,
            )
        )
        record_sync_outcome(content_kind=task.content_kind.value, success=result.success)

        payload = {
            "task_id": task.id,
            "content_id": task.content_id,
            "content_kind": task.content_kind.value,
            "attempt": task.attempts + 1,
            "message": result.message,
        }
        if result.success:
            log.info("sync_task_done", extra={"payload": payload})
        else:
            log.warning("sync_task_failed", extra={"payload": payload})
        return SyncOutcome(
            content_id=task.content_id,
            content_kind=task.content_kind,
            operation=task.operation,
            success=result.success,
            message=result.message,
        )
