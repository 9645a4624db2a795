"""
Хранилище очереди репликации и журнала (Queue Store).

Назначение:
- durable очередь задач (таблица sync_queue)
- append-only журнал результатов (таблица sync_log)
- read-only запросы для оператора (pending/parked/статус контента)

Важно:
- каждая мутация это одна атомарная операция над одной строкой
- наружу отдаются dataclass-снимки, а не ORM-объекты
- любая ошибка SQLAlchemy превращается в StoreUnavailableError
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from content_replicator.common.config import ReplicationConfig
from content_replicator.common.errors import StoreUnavailableError
from content_replicator.common.logging import get_project_logger
from content_replicator.common.time import to_db_time
from content_replicator.domain.enums import ContentKind, LogStatus, SyncOperation
from content_replicator.queue.scheduler import eligibility_window
from content_replicator.storage.db import db_session
from content_replicator.storage.models import SyncLogEntry, SyncTask
from content_replicator.storage.repositories import SyncLogRepository, SyncTaskRepository

log = get_project_logger()

SessionFactory = Callable[[], AbstractContextManager[Session]]


@dataclass(frozen=True)
class QueuedTask:
    id: int
    content_id: int
    content_kind: ContentKind
    operation: SyncOperation
    priority: int
    attempts: int
    created_at: datetime

    @classmethod
    def from_row(cls, row: SyncTask) -> QueuedTask:
        return cls(
            id=row.id,
            content_id=row.content_id,
            content_kind=ContentKind(row.content_kind),
            operation=SyncOperation(row.operation),
            priority=row.priority,
            attempts=row.attempts,
            created_at=row.created_at,
        )


@dataclass(frozen=True)
class LogEntry:
    content_id: int
    content_kind: ContentKind
    operation: SyncOperation
    status: LogStatus
    message: str
    synced_at: datetime | None = None


@dataclass(frozen=True)
class SyncLogRecord:
    id: int
    content_id: int
    content_kind: str
    operation: str
    status: str
    message: str
    synced_at: datetime

    @classmethod
    def from_row(cls, row: SyncLogEntry) -> SyncLogRecord:
        return cls(
            id=row.id,
            content_id=row.content_id,
            content_kind=row.content_kind,
            operation=row.operation,
            status=row.status,
            message=row.message,
            synced_at=row.synced_at,
        )


@dataclass(frozen=True)
class ContentSyncStatus:
    queued: bool
    parked: bool
    attempts: int
    last_log: SyncLogRecord | None


class QueueStore:
    def __init__(
        self,
        config: ReplicationConfig,
        *,
        session_factory: SessionFactory = db_session,
    ) -> None:
        self.config = config
        self._session_factory = session_factory

    @contextmanager
    def _session(self, op: str) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            log.error(
                "queue_store_unavailable",
                extra={"payload": {"op": op, "err": str(e)[:300]}},
            )
            raise StoreUnavailableError(details={"op": op, "err": str(e)[:300]}) from e

    # -------------------------------------------------------------------------
    # Мутации
    # -------------------------------------------------------------------------
    def enqueue(
        self,
        content_id: int,
        content_kind: ContentKind,
        priority: int,
        *,
        operation: SyncOperation = SyncOperation.sync,
        now: datetime | None = None,
    ) -> bool:
        """
        Поставить задачу, если для (content_id, content_kind, operation) её ещё нет.
        Повтор не ошибка, а no-op: возвращает False.
        """
        kind = ContentKind(content_kind).value
        with self._session("enqueue") as session:
            repo = SyncTaskRepository(session)
            if repo.find(content_id=content_id, content_kind=kind, operation=operation.value):
                return False
            repo.add(
                SyncTask(
                    content_id=content_id,
                    content_kind=kind,
                    operation=operation.value,
                    priority=int(priority),
                    attempts=0,
                    created_at=to_db_time(now),
                )
            )
            try:
                session.flush()
            except IntegrityError:
                # Параллельный enqueue успел раньше (unique constraint)
                session.rollback()
                return False

        log.info(
            "sync_task_enqueued",
            extra={"payload": {"content_id": content_id, "content_kind": kind, "priority": priority}},
        )
        return True

    def remove(self, task_id: int) -> bool:
        with self._session("remove") as session:
            return SyncTaskRepository(session).delete(task_id)

    def increment_attempts(self, task_id: int) -> bool:
        with self._session("increment_attempts") as session:
            return SyncTaskRepository(session).increment_attempts(task_id)

    def append(self, entry: LogEntry) -> SyncLogRecord:
        with self._session("append") as session:
            row = SyncLogRepository(session).add(
                SyncLogEntry(
                    content_id=entry.content_id,
                    content_kind=ContentKind(entry.content_kind).value,
                    operation=SyncOperation(entry.operation).value,
                    status=LogStatus(entry.status).value,
                    message=entry.message or "",
                    synced_at=to_db_time(entry.synced_at),
                )
            )
            session.flush()
            return SyncLogRecord.from_row(row)

    def purge_parked(self) -> int:
        """
        Удалить исчерпавшие попытки задачи (действие оператора).
        После этого новое изменение контента снова попадёт в очередь.
        """
        with self._session("purge_parked") as session:
            removed = SyncTaskRepository(session).delete_parked(max_attempts=self.config.max_attempts)
        log.info("sync_parked_purged", extra={"payload": {"removed": removed}})
        return removed

    # -------------------------------------------------------------------------
    # Выборки
    # -------------------------------------------------------------------------
    def select_eligible(
        self,
        limit: int,
        *,
        ignore_delay: bool,
        now: datetime | None = None,
    ) -> list[QueuedTask]:
        window = eligibility_window(self.config, now=now, ignore_delay=ignore_delay)
        with self._session("select_eligible") as session:
            rows = SyncTaskRepository(session).list_eligible(
                max_attempts=window.max_attempts,
                created_before=window.created_before,
                limit=limit,
            )
            return [QueuedTask.from_row(r) for r in rows]

    def pending_count(self) -> int:
        with self._session("pending_count") as session:
            return SyncTaskRepository(session).count_pending(max_attempts=self.config.max_attempts)

    def parked_count(self) -> int:
        with self._session("parked_count") as session:
            return SyncTaskRepository(session).count_parked(max_attempts=self.config.max_attempts)

    def list_parked(self, limit: int = 100) -> list[QueuedTask]:
        with self._session("list_parked") as session:
            rows = SyncTaskRepository(session).list_parked(
                max_attempts=self.config.max_attempts, limit=limit
            )
            return [QueuedTask.from_row(r) for r in rows]

    def recent_log(self, limit: int = 10) -> list[SyncLogRecord]:
        with self._session("recent_log") as session:
            rows = SyncLogRepository(session).list_recent(limit=limit)
            return [SyncLogRecord.from_row(r) for r in rows]

    def status_for(
        self, content_id: int, content_kind: ContentKind | None = None
    ) -> ContentSyncStatus:
        kind = ContentKind(content_kind).value if content_kind else None
        with self._session("status_for") as session:
            tasks = SyncTaskRepository(session).list_for_content(
                content_id=content_id, content_kind=kind
            )
            last = SyncLogRepository(session).list_recent(
                limit=1, content_id=content_id, content_kind=kind
            )
            max_attempts = self.config.max_attempts
            return ContentSyncStatus(
                queued=any(t.attempts < max_attempts for t in tasks),
                parked=any(t.attempts >= max_attempts for t in tasks),
                attempts=max((t.attempts for t in tasks), default=0),
                last_log=SyncLogRecord.from_row(last[0]) if last else None,
            )
