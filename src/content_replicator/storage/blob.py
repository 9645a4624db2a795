"""
Файловое хранилище вложений (UPLOADS_DIR).

Ключ: относительный путь внутри базовой директории.
"""

from __future__ import annotations

import re
from pathlib import Path

from content_replicator.common.config import get_settings

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def base_dir() -> Path:
    return Path(get_settings().uploads_dir).resolve()


def sanitize_file_name(name: str) -> str:
    """
    Имя файла без директорий и спецсимволов (то, что пришло с source, не доверяем).
    """
    raw = (name or "").replace("\\", "/").rsplit("/", 1)[-1]
    cleaned = _UNSAFE_CHARS.sub("-", raw).strip(".-")
    return cleaned or "file"


def key_to_path(key: str) -> Path:
    # защита от path traversal
    key = key.lstrip("/")
    if ".." in key.split("/"):
        raise ValueError("invalid key")
    return base_dir() / key


def put_bytes(key: str, data: bytes) -> str:
    """Сохранить bytes и вернуть ключ."""
    p = key_to_path(key)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(data)
    return key


def get_bytes(key: str) -> bytes:
    return key_to_path(key).read_bytes()


def exists(key: str) -> bool:
    return key_to_path(key).is_file()


def size(key: str) -> int:
    return key_to_path(key).stat().st_size


def delete(key: str) -> None:
    p = key_to_path(key)
    try:
        p.unlink()
    except FileNotFoundError:
        pass


def list_keys(prefix: str) -> list[str]:
    """Ключи всех файлов под префиксом (каталогом)."""
    root = key_to_path(prefix)
    if not root.is_dir():
        return []
    base = base_dir()
    return sorted(p.relative_to(base).as_posix() for p in root.rglob("*") if p.is_file())
