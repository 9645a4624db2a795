"""
Утилиты безопасности и авторизации.

Две независимые проверки:
- протокол репликации: Bearer-токен == SYNC_SHARED_SECRET (точное совпадение)
- операторские/intake эндпоинты: X-API-Key из API_KEYS (AUTH_MODE=api_key|none)
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass

from .config import get_settings
from .errors import UnauthorizedError


def _parse_api_keys(raw: str) -> set[str]:
    """
    Разбор строки API_KEYS из ENV в множество.
    """
    return {k.strip() for k in (raw or "").split(",") if k.strip()}


@dataclass(frozen=True)
class AuthContext:
    subject: str
    auth_type: str


def extract_bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    prefix = "bearer "
    if authorization.lower().startswith(prefix):
        return authorization[len(prefix) :].strip()
    return None


def _is_prod_env(app_env: str | None) -> bool:
    env = (app_env or "").strip().lower()
    return env in {"prod", "production"}


def tokens_match(presented: str | None, expected: str | None) -> bool:
    if not presented or not expected:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def require_sync_token(*, authorization: str | None, shared_secret: str) -> AuthContext:
    """
    Проверка входящего запроса репликации.
    Пустой SYNC_SHARED_SECRET на target означает: принимать нечего.
    """
    if not (shared_secret or "").strip():
        raise UnauthorizedError("shared secret is not configured")
    token = extract_bearer(authorization)
    if token is None:
        raise UnauthorizedError("missing bearer token")
    if not tokens_match(token, shared_secret):
        raise UnauthorizedError("invalid bearer token")
    return AuthContext(subject="replication-source", auth_type="sync_token")


def require_api_key(*, x_api_key: str | None) -> AuthContext:
    """
    Проверка операторского доступа:
    - AUTH_MODE=none: без проверки (dev)
    - AUTH_MODE=api_key: X-API-Key должен быть в API_KEYS
    """
    settings = get_settings()
    mode = (settings.auth_mode or "api_key").lower().strip()

    if mode == "none":
        if _is_prod_env(getattr(settings, "app_env", None)):
            raise UnauthorizedError("AUTH_MODE=none is forbidden in APP_ENV=prod")
        return AuthContext(subject="anonymous", auth_type="none")

    if mode != "api_key":
        raise UnauthorizedError("unknown auth mode")

    keys = _parse_api_keys(settings.api_keys)
    if not x_api_key or not any(tokens_match(x_api_key, k) for k in keys):
        raise UnauthorizedError("invalid API key")
    return AuthContext(subject="operator", auth_type="api_key")
