"""
Метрики Prometheus для сервиса.

Назначение:
- Экспорт /metrics
- Счётчики задач репликации и задержка цикла диспетчера
- Используется API Gateway и worker_sync
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import FastAPI, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# =============================================================================
# СЧЁТЧИКИ И МЕТРИКИ
# =============================================================================

# Общее количество HTTP-запросов
REQUESTS_TOTAL = Counter(
    "replicator_requests_total",
    "Общее количество HTTP запросов",
    ["service", "route", "method", "status"],
)

HTTP_REQUEST_LATENCY_MS = Histogram(
    "replicator_http_request_latency_ms",
    "Задержка HTTP запроса (мс)",
    ["service", "route", "method"],
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
)

SYNC_TASKS_TOTAL = Counter(
    "replicator_sync_tasks_total",
    "Количество обработанных задач репликации",
    ["content_kind", "result"],  # result=success|error
)

SYNC_CYCLE_LATENCY_MS = Histogram(
    "replicator_sync_cycle_latency_ms",
    "Длительность цикла диспетчера (мс)",
    ["trigger"],  # cron|manual
    buckets=(10, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000, 60000, 120000),
)

SYNC_CYCLES_DROPPED_TOTAL = Counter(
    "replicator_sync_cycles_dropped_total",
    "Триггеры цикла, отброшенные из-за уже идущего цикла",
    ["trigger"],
)

SYNC_RECEIVED_TOTAL = Counter(
    "replicator_sync_received_total",
    "Реплики, принятые на стороне target",
    ["content_kind", "identity"],  # identity=preserved|diverged
)

SYNC_QUEUE_PENDING = Gauge(
    "replicator_sync_queue_pending",
    "Задачи в очереди, ещё не исчерпавшие попытки",
)

SYNC_QUEUE_PARKED = Gauge(
    "replicator_sync_queue_parked",
    "Задачи, исчерпавшие попытки (ждут оператора)",
)

METRICS_COLLECTION_ERRORS_TOTAL = Counter(
    "replicator_metrics_collection_errors_total",
    "Ошибки сборки служебных метрик",
    ["source"],
)


@contextmanager
def track_cycle_latency(trigger: str) -> Iterator[None]:
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        SYNC_CYCLE_LATENCY_MS.labels(trigger=trigger).observe(elapsed_ms)


def record_sync_outcome(*, content_kind: str, success: bool) -> None:
    SYNC_TASKS_TOTAL.labels(
        content_kind=content_kind, result="success" if success else "error"
    ).inc()


def record_cycle_dropped(*, trigger: str) -> None:
    SYNC_CYCLES_DROPPED_TOTAL.labels(trigger=trigger).inc()


def record_received(*, content_kind: str, identity_preserved: bool) -> None:
    SYNC_RECEIVED_TOTAL.labels(
        content_kind=content_kind,
        identity="preserved" if identity_preserved else "diverged",
    ).inc()


def refresh_queue_metrics() -> None:
    try:
        from content_replicator.common.config import ReplicationConfig
        from content_replicator.queue.store import QueueStore

        store = QueueStore(ReplicationConfig.from_settings())
        SYNC_QUEUE_PENDING.set(store.pending_count())
        SYNC_QUEUE_PARKED.set(store.parked_count())
    except Exception:
        METRICS_COLLECTION_ERRORS_TOTAL.labels(source="queue_metrics").inc()


# =============================================================================
# ENDPOINT /metrics
# =============================================================================
def setup_metrics_endpoint(app: FastAPI) -> None:
    """
    Регистрирует endpoint /metrics для Prometheus.
    """

    @app.middleware("http")
    async def http_metrics(request: Request, call_next):
        route = request.url.path
        method = request.method
        started = time.perf_counter()

        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        status_code = str(response.status_code)

        REQUESTS_TOTAL.labels(
            service="api-gateway",
            route=route,
            method=method,
            status=status_code,
        ).inc()
        HTTP_REQUEST_LATENCY_MS.labels(
            service="api-gateway",
            route=route,
            method=method,
        ).observe(elapsed_ms)
        return response

    @app.get("/metrics")
    def metrics() -> Response:
        refresh_queue_metrics()
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
