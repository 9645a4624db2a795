"""
Инициализация базы данных и сессий SQLAlchemy.

Назначение:
- Создание engine (Postgres в prod, SQLite в dev/тестах)
- Контекстный менеджер для сессий
- Единая точка доступа к БД для всех сервисов
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from content_replicator.common.config import get_settings


def _build_engine(dsn: str) -> Engine:
    if not dsn.startswith("sqlite"):
        return create_engine(dsn, pool_pre_ping=True)

    eng = create_engine(dsn, connect_args={"check_same_thread": False})

    # pysqlite сам управляет транзакциями и ломает SAVEPOINT;
    # отдаём BEGIN под контроль SQLAlchemy
    @event.listens_for(eng, "connect")
    def _sqlite_connect(dbapi_connection, _record) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(eng, "begin")
    def _sqlite_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")

    return eng


# =============================================================================
# ENGINE / SESSION FACTORY
# =============================================================================
_settings = get_settings()

engine = _build_engine(_settings.database_dsn)

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


def configure_engine(dsn: str) -> Engine:
    """
    Переключить процесс на другую БД (тесты, CLI).
    """
    global engine
    engine = _build_engine(dsn)
    SessionLocal.configure(bind=engine)
    return engine


def init_db() -> None:
    """
    Создать таблицы без миграций (DB_AUTO_CREATE=true, dev/тесты).
    """
    from content_replicator.storage.models import Base

    Base.metadata.create_all(engine)


# =============================================================================
# CONTEXT MANAGER
# =============================================================================
@contextmanager
def db_session() -> Iterator[Session]:
    """
    Контекстный менеджер для работы с БД.

    Использование:
        with db_session() as session:
            session.add(...)
    """
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
