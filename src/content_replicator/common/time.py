"""
Утилиты времени.

Назначение:
- единый источник текущего времени (UTC)
- naive UTC для колонок DateTime в БД (SQLite/Postgres без tz)
"""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Текущее время в UTC (datetime).
    """
    return datetime.now(UTC)


def db_now() -> datetime:
    """
    Текущее время в UTC без tzinfo: так хранятся created_at/synced_at.
    """
    return utc_now().replace(tzinfo=None)


def to_db_time(value: datetime | None) -> datetime:
    if value is None:
        return db_now()
    if value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value
