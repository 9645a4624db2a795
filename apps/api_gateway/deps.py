"""
FastAPI Depends.

Сюда выносим:
- проверку Bearer-токена протокола репликации (SYNC_SHARED_SECRET)
- проверку операторского доступа (X-API-Key)
- сборку сервисов узла (очередь, intake, receiver)
"""

from __future__ import annotations

from fastapi import Header, HTTPException, Request, status

from content_replicator.common.config import ReplicationConfig, get_settings
from content_replicator.common.errors import UnauthorizedError
from content_replicator.common.logging import get_project_logger
from content_replicator.common.security import AuthContext, require_api_key, require_sync_token
from content_replicator.queue.store import QueueStore
from content_replicator.replication.receiver import ReplicationReceiver
from content_replicator.services.intake import EventIntake

log = get_project_logger()


def _request_meta(request: Request | None) -> tuple[str, str, str | None]:
    if request is None:
        return "unknown", "UNKNOWN", None
    endpoint = request.url.path
    method = request.method
    client_ip = request.client.host if request.client else None
    return endpoint, method, client_ip


def _audit_allow(
    *,
    request: Request | None,
    ctx: AuthContext,
    reason: str,
) -> None:
    endpoint, method, client_ip = _request_meta(request)
    log.info(
        "security_audit_allow",
        extra={
            "payload": {
                "endpoint": endpoint,
                "method": method,
                "subject": ctx.subject,
                "auth_type": ctx.auth_type,
                "reason": reason,
                "client_ip": client_ip,
            }
        },
    )


def _audit_deny(
    *,
    request: Request | None,
    status_code: int,
    reason: str,
    error_code: str,
    auth_type: str | None = None,
) -> None:
    endpoint, method, client_ip = _request_meta(request)
    log.warning(
        "security_audit_deny",
        extra={
            "payload": {
                "endpoint": endpoint,
                "method": method,
                "status_code": status_code,
                "reason": reason,
                "error_code": error_code,
                "auth_type": auth_type or "unknown",
                "client_ip": client_ip,
            }
        },
    )


def _unauthorized(request: Request, e: UnauthorizedError, *, auth_type: str) -> HTTPException:
    _audit_deny(
        request=request,
        status_code=status.HTTP_401_UNAUTHORIZED,
        reason=e.message,
        error_code=e.code,
        auth_type=auth_type,
    )
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": e.code, "message": e.message},
        headers={"WWW-Authenticate": "Bearer"} if auth_type == "sync_token" else None,
    )


def sync_auth_dep(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> AuthContext:
    """
    Авторизация входящих реплик (только на target).
    """
    try:
        ctx = require_sync_token(
            authorization=authorization,
            shared_secret=get_settings().sync_shared_secret,
        )
    except UnauthorizedError as e:
        raise _unauthorized(request, e, auth_type="sync_token") from e
    _audit_allow(request=request, ctx=ctx, reason="sync_token_ok")
    return ctx


def auth_dep(
    request: Request,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> AuthContext:
    """
    Проверка операторского доступа для HTTP.
    """
    try:
        ctx = require_api_key(x_api_key=x_api_key)
    except UnauthorizedError as e:
        raise _unauthorized(request, e, auth_type="api_key") from e
    _audit_allow(request=request, ctx=ctx, reason="auth_ok")
    return ctx


def get_replication_config() -> ReplicationConfig:
    return ReplicationConfig.from_settings()


def get_queue_store() -> QueueStore:
    return QueueStore(get_replication_config())


def get_event_intake() -> EventIntake:
    config = get_replication_config()
    return EventIntake(config, QueueStore(config))


def get_receiver() -> ReplicationReceiver:
    return ReplicationReceiver(thumbnail_sizes=get_settings().thumbnail_sizes)
