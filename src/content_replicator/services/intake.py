"""
Приём событий об изменении контента (сторона source).

Назначение:
- фильтр по роли узла и статусу контента
- постановка задачи в очередь с приоритетом по виду контента
"""

from __future__ import annotations

from content_replicator.common.config import ReplicationConfig
from content_replicator.common.logging import get_project_logger
from content_replicator.domain.enums import (
    PRIORITY_BY_KIND,
    SYNCABLE_STATUSES,
    ContentKind,
    ContentStatus,
)
from content_replicator.queue.store import QueueStore

log = get_project_logger()


class EventIntake:
    def __init__(self, config: ReplicationConfig, store: QueueStore) -> None:
        self.config = config
        self.store = store

    def on_content_changed(self, content_id: int, kind: ContentKind, status: str) -> bool:
        """
        Вернуть True, если задача реально поставлена (повтор или фильтр: False).
        """
        if not self.config.is_source:
            return False
        try:
            parsed = ContentStatus(status)
        except ValueError:
            parsed = None
        if parsed not in SYNCABLE_STATUSES:
            log.debug(
                "sync_event_ignored",
                extra={"payload": {"content_id": content_id, "status": status}},
            )
            return False
        kind = ContentKind(kind)
        return self.store.enqueue(content_id, kind, PRIORITY_BY_KIND[kind])

    def on_attachment_uploaded(self, attachment_id: int) -> bool:
        # Загрузка файла реплицируется без фильтра по статусу
        if not self.config.is_source:
            return False
        return self.store.enqueue(
            attachment_id,
            ContentKind.attachment,
            PRIORITY_BY_KIND[ContentKind.attachment],
        )
