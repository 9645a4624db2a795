"""
Операторские эндпоинты синхронизации.

Назначение:
- состояние очереди и журнала (pending/parked/последние записи)
- ручной запуск цикла без задержки
- просмотр конфигурации (секрет маскируется) и готовности узла
- разбор задач, исчерпавших попытки
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from apps.api_gateway.deps import auth_dep, get_queue_store, get_replication_config
from content_replicator.common.config import ReplicationConfig
from content_replicator.common.errors import CycleInProgressError, StoreUnavailableError
from content_replicator.domain.enums import ContentKind
from content_replicator.jobs.sync_job import get_dispatcher
from content_replicator.queue.store import QueuedTask, QueueStore, SyncLogRecord
from content_replicator.services.readiness_service import evaluate_readiness

router = APIRouter(dependencies=[Depends(auth_dep)])


class SyncLogItem(BaseModel):
    content_id: int
    content_kind: str
    operation: str
    status: str
    message: str
    synced_at: datetime


class SyncStatusResponse(BaseModel):
    role: str
    pending: int
    parked: int
    recent: list[SyncLogItem]


class ContentSyncStatusResponse(BaseModel):
    content_id: int
    content_kind: str | None
    queued: bool
    parked: bool
    attempts: int
    last_log: SyncLogItem | None


class SyncOutcomeItem(BaseModel):
    content_id: int
    content_kind: str
    operation: str
    success: bool
    message: str


class SyncRunResponse(BaseModel):
    processed: int
    outcomes: list[SyncOutcomeItem]


class SyncConfigResponse(BaseModel):
    role: str
    target_base_url: str
    shared_secret: str
    sync_delay_minutes: int
    max_attempts: int
    batch_size: int
    document_timeout_sec: int
    attachment_timeout_sec: int
    max_attachment_bytes: int
    verify_tls: bool


class ParkedTaskItem(BaseModel):
    content_id: int
    content_kind: str
    operation: str
    attempts: int
    created_at: datetime


class ParkedListResponse(BaseModel):
    tasks: list[ParkedTaskItem]


class ParkedPurgeResponse(BaseModel):
    removed: int


class ReadinessIssueResponse(BaseModel):
    severity: str
    code: str
    message: str


class SystemReadinessResponse(BaseModel):
    ready: bool
    issues: list[ReadinessIssueResponse]


def _mask(secret: str) -> str:
    if not secret:
        return ""
    if len(secret) <= 4:
        return "****"
    return f"{secret[:2]}****{secret[-2:]}"


def _as_log_item(rec: SyncLogRecord) -> SyncLogItem:
    return SyncLogItem(
        content_id=rec.content_id,
        content_kind=rec.content_kind,
        operation=rec.operation,
        status=rec.status,
        message=rec.message,
        synced_at=rec.synced_at,
    )


def _as_parked_item(task: QueuedTask) -> ParkedTaskItem:
    return ParkedTaskItem(
        content_id=task.content_id,
        content_kind=task.content_kind.value,
        operation=task.operation.value,
        attempts=task.attempts,
        created_at=task.created_at,
    )


def _store_unavailable(e: StoreUnavailableError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"code": e.code, "message": e.message},
    )


@router.get("/sync/status", response_model=SyncStatusResponse)
def sync_status(
    limit: int = Query(default=10, ge=1, le=100),
    config: ReplicationConfig = Depends(get_replication_config),
    store: QueueStore = Depends(get_queue_store),
) -> SyncStatusResponse:
    try:
        return SyncStatusResponse(
            role=config.role.value,
            pending=store.pending_count(),
            parked=store.parked_count(),
            recent=[_as_log_item(r) for r in store.recent_log(limit)],
        )
    except StoreUnavailableError as e:
        raise _store_unavailable(e) from e


@router.get("/sync/status/{content_id}", response_model=ContentSyncStatusResponse)
def sync_content_status(
    content_id: int,
    kind: ContentKind | None = Query(default=None),
    store: QueueStore = Depends(get_queue_store),
) -> ContentSyncStatusResponse:
    try:
        state = store.status_for(content_id, kind)
    except StoreUnavailableError as e:
        raise _store_unavailable(e) from e
    return ContentSyncStatusResponse(
        content_id=content_id,
        content_kind=kind.value if kind else None,
        queued=state.queued,
        parked=state.parked,
        attempts=state.attempts,
        last_log=_as_log_item(state.last_log) if state.last_log else None,
    )


@router.post("/sync/run", response_model=SyncRunResponse)
def sync_run() -> SyncRunResponse:
    try:
        outcomes = get_dispatcher().run_cycle(ignore_delay=True)
    except CycleInProgressError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": e.code, "message": e.message},
        ) from e
    except StoreUnavailableError as e:
        raise _store_unavailable(e) from e
    return SyncRunResponse(
        processed=len(outcomes),
        outcomes=[
            SyncOutcomeItem(
                content_id=o.content_id,
                content_kind=o.content_kind.value,
                operation=o.operation.value,
                success=o.success,
                message=o.message,
            )
            for o in outcomes
        ],
    )


@router.get("/sync/config", response_model=SyncConfigResponse)
def sync_config(config: ReplicationConfig = Depends(get_replication_config)) -> SyncConfigResponse:
    return SyncConfigResponse(
        role=config.role.value,
        target_base_url=config.target_base_url,
        shared_secret=_mask(config.shared_secret),
        sync_delay_minutes=config.sync_delay_minutes,
        max_attempts=config.max_attempts,
        batch_size=config.batch_size,
        document_timeout_sec=config.document_timeout_sec,
        attachment_timeout_sec=config.attachment_timeout_sec,
        max_attachment_bytes=config.max_attachment_bytes,
        verify_tls=config.verify_tls,
    )


@router.get("/sync/parked", response_model=ParkedListResponse)
def sync_parked(
    limit: int = Query(default=100, ge=1, le=500),
    store: QueueStore = Depends(get_queue_store),
) -> ParkedListResponse:
    try:
        return ParkedListResponse(tasks=[_as_parked_item(t) for t in store.list_parked(limit)])
    except StoreUnavailableError as e:
        raise _store_unavailable(e) from e


@router.delete("/sync/parked", response_model=ParkedPurgeResponse)
def sync_parked_purge(store: QueueStore = Depends(get_queue_store)) -> ParkedPurgeResponse:
    try:
        return ParkedPurgeResponse(removed=store.purge_parked())
    except StoreUnavailableError as e:
        raise _store_unavailable(e) from e


@router.get("/admin/system/readiness", response_model=SystemReadinessResponse)
def admin_system_readiness() -> SystemReadinessResponse:
    state = evaluate_readiness()
    return SystemReadinessResponse(
        ready=state.ready,
        issues=[
            ReadinessIssueResponse(
                severity=i.severity,
                code=i.code,
                message=i.message,
            )
            for i in state.issues
        ],
    )
