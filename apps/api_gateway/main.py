"""
API Gateway (FastAPI).

Функции:
- /health
- /metrics
- протокол репликации /sync/v1/* (узел target)
- intake событий CMS и операторские эндпоинты /v1/* (узел source)

Архитектурно:
- CMS сообщает об изменениях -> задача в sync_queue
- worker_sync (или ручной запуск) отправляет задачи на target
- target применяет реплику с сохранением идентификатора
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from apps.api_gateway.routers.admin import router as admin_router
from apps.api_gateway.routers.events import router as events_router
from apps.api_gateway.routers.sync_receiver import router as sync_receiver_router
from content_replicator.common.config import get_settings
from content_replicator.common.logging import get_project_logger, setup_logging
from content_replicator.common.metrics import setup_metrics_endpoint
from content_replicator.contracts.sync_api import SYNC_API_PREFIX
from content_replicator.services.readiness_service import enforce_startup_readiness
from content_replicator.storage.db import init_db

log = get_project_logger()


def _create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Content Replicator", version="0.1.0")

    setup_metrics_endpoint(app)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"ok": True, "role": (settings.sync_role or "").strip().lower()}

    app.include_router(sync_receiver_router, prefix=SYNC_API_PREFIX)
    app.include_router(events_router, prefix="/v1")
    app.include_router(admin_router, prefix="/v1")

    return app


setup_logging()
enforce_startup_readiness(service_name="api-gateway")

# Автосоздание таблиц в dev (чтобы проект стартовал без ручных миграций)
if get_settings().db_auto_create:
    init_db()
log.info("db_ready")

app = _create_app()
