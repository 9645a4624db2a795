from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest

# До импорта content_replicator: engine и Settings создаются при импорте
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_DSN", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("SYNC_LOCK_MODE", "local")
os.environ.setdefault("AUTH_MODE", "api_key")
os.environ.setdefault("API_KEYS", "test-key")
os.environ.setdefault("SYNC_TARGET_BASE_URL", "http://target.test")
os.environ.setdefault("SYNC_SHARED_SECRET", "test-secret")
os.environ.setdefault("LOG_FORMAT", "text")

from content_replicator.common.config import ReplicationConfig, get_settings  # noqa: E402
from content_replicator.domain.enums import NodeRole  # noqa: E402
from content_replicator.storage import db as db_module  # noqa: E402
from content_replicator.storage.models import Base  # noqa: E402

_SETTINGS_KEYS = [
    "app_env",
    "auth_mode",
    "api_keys",
    "sync_role",
    "sync_target_base_url",
    "sync_shared_secret",
    "sync_delay_minutes",
    "sync_max_attempts",
    "sync_batch_size",
    "sync_verify_tls",
    "sync_lock_mode",
    "uploads_dir",
    "thumbnail_sizes",
    "readiness_fail_fast_in_prod",
]


@pytest.fixture()
def replicator_db(tmp_path: Path) -> Iterator[object]:
    engine = db_module.configure_engine(f"sqlite+pysqlite:///{tmp_path / 'replicator.db'}")
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def sync_settings() -> Iterator[object]:
    s = get_settings()
    snapshot = {k: getattr(s, k) for k in _SETTINGS_KEYS}
    try:
        yield s
    finally:
        for k, v in snapshot.items():
            setattr(s, k, v)


@pytest.fixture()
def uploads_dir(tmp_path: Path, sync_settings) -> Path:
    path = tmp_path / "uploads"
    path.mkdir()
    sync_settings.uploads_dir = str(path)
    return path


@pytest.fixture()
def source_config() -> ReplicationConfig:
    return ReplicationConfig(
        role=NodeRole.source,
        target_base_url="http://target.test",
        shared_secret="test-secret",
        sync_delay_minutes=5,
        max_attempts=3,
        batch_size=10,
    )
