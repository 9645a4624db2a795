"""
Single-flight блокировка цикла синхронизации.

Политика: если цикл уже идёт, новый триггер отбрасывается
(следующий тик cron всё равно заберёт те же задачи).

Режимы (SYNC_LOCK_MODE):
- local: threading.Lock, один процесс (dev/тесты)
- redis: SET NX EX с токеном владельца, для нескольких процессов одного узла
  (api_gateway с ручным запуском + worker_sync)
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol
from uuid import uuid4

from content_replicator.common.config import get_settings
from content_replicator.common.errors import CycleInProgressError
from content_replicator.common.logging import get_project_logger

log = get_project_logger()

CYCLE_LOCK_KEY = "content-replicator:sync_cycle_lock"


class CycleLock(Protocol):
    def try_acquire(self) -> str | None:
        """Вернуть токен владельца или None, если блокировка занята."""
        ...

    def release(self, token: str) -> None:
        ...


class LocalCycleLock:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._token: str | None = None

    def try_acquire(self) -> str | None:
        if not self._lock.acquire(blocking=False):
            return None
        self._token = uuid4().hex
        return self._token

    def release(self, token: str) -> None:
        if self._token != token:
            return
        self._token = None
        self._lock.release()


class RedisCycleLock:
    def __init__(self, *, client=None, key: str = CYCLE_LOCK_KEY, ttl_sec: int = 600) -> None:
        self._client = client
        self.key = key
        self.ttl_sec = max(10, int(ttl_sec))

    def _redis(self):
        if self._client is None:
            from content_replicator.queue.redis import redis_client

            self._client = redis_client()
        return self._client

    def try_acquire(self) -> str | None:
        token = uuid4().hex
        ok = self._redis().set(self.key, token, nx=True, ex=self.ttl_sec)
        return token if ok else None

    def release(self, token: str) -> None:
        r = self._redis()
        current = r.get(self.key)
        if current == token:
            r.delete(self.key)


def build_cycle_lock() -> CycleLock:
    s = get_settings()
    mode = (s.sync_lock_mode or "local").strip().lower()
    if mode == "redis":
        return RedisCycleLock(ttl_sec=int(s.sync_lock_ttl_sec))
    return LocalCycleLock()


@contextmanager
def single_flight(lock: CycleLock, *, trigger: str) -> Iterator[str]:
    token = lock.try_acquire()
    if token is None:
        log.warning("sync_cycle_dropped", extra={"payload": {"trigger": trigger}})
        raise CycleInProgressError(details={"trigger": trigger})
    try:
        yield token
    finally:
        try:
            lock.release(token)
        except Exception as e:
            log.warning(
                "sync_cycle_lock_release_failed",
                extra={"payload": {"trigger": trigger, "error": str(e)[:200]}},
            )
