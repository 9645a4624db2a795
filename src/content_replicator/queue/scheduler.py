"""
Планировщик: какие задачи очереди можно запускать сейчас.

Правила:
- cron-путь (ignore_delay=False): только задачи старше SYNC_DELAY_MINUTES,
  чтобы серия быстрых правок схлопывалась в одну синхронизацию
- ручной запуск (ignore_delay=True): задержка игнорируется
- в обоих случаях attempts < max_attempts
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from content_replicator.common.config import ReplicationConfig
from content_replicator.common.time import to_db_time

if TYPE_CHECKING:
    from content_replicator.queue.store import QueuedTask, QueueStore


@dataclass(frozen=True)
class EligibilityWindow:
    created_before: datetime | None
    max_attempts: int


def eligibility_window(
    config: ReplicationConfig, *, now: datetime | None, ignore_delay: bool
) -> EligibilityWindow:
    if ignore_delay:
        return EligibilityWindow(created_before=None, max_attempts=config.max_attempts)
    cutoff = to_db_time(now) - timedelta(minutes=config.sync_delay_minutes)
    return EligibilityWindow(created_before=cutoff, max_attempts=config.max_attempts)


class Scheduler:
    def __init__(self, config: ReplicationConfig, *, batch_size: int | None = None) -> None:
        self.config = config
        self.batch_size = max(1, int(batch_size if batch_size is not None else config.batch_size))

    def next_batch(
        self,
        store: QueueStore,
        *,
        ignore_delay: bool,
        now: datetime | None = None,
    ) -> list[QueuedTask]:
        return store.select_eligible(self.batch_size, ignore_delay=ignore_delay, now=now)
