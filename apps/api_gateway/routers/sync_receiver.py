"""
Эндпоинты протокола репликации (сторона target).

Назначение:
- приём документов и вложений от source
- авторизация Bearer-токеном SYNC_SHARED_SECRET
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from apps.api_gateway.deps import get_receiver, sync_auth_dep
from content_replicator.common.errors import AppError, ErrCode
from content_replicator.common.metrics import record_received
from content_replicator.contracts.sync_api import (
    AttachmentSyncRequest,
    DocumentSyncRequest,
    SyncResponse,
)
from content_replicator.replication.receiver import ReplicationReceiver, UpsertResult

router = APIRouter(dependencies=[Depends(sync_auth_dep)])

_STATUS_BY_CODE = {
    ErrCode.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def _http_error(e: AppError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_BY_CODE.get(e.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"code": e.code, "message": e.message},
    )


def _as_response(result: UpsertResult, *, label: str) -> SyncResponse:
    message = f"{label} applied"
    if not result.identity_preserved:
        message += f" under id {result.id}"
    return SyncResponse(
        success=True,
        id=result.id,
        identity_preserved=result.identity_preserved,
        message=message,
    )


@router.post("/documents", response_model=SyncResponse, response_model_by_alias=True)
def receive_document(
    req: DocumentSyncRequest,
    receiver: ReplicationReceiver = Depends(get_receiver),
) -> SyncResponse:
    try:
        result = receiver.apply_document(req)
    except AppError as e:
        raise _http_error(e) from e
    record_received(content_kind="document", identity_preserved=result.identity_preserved)
    return _as_response(result, label="Document")


@router.post("/attachments", response_model=SyncResponse, response_model_by_alias=True)
def receive_attachment(
    req: AttachmentSyncRequest,
    receiver: ReplicationReceiver = Depends(get_receiver),
) -> SyncResponse:
    try:
        result = receiver.apply_attachment(req)
    except AppError as e:
        raise _http_error(e) from e
    record_received(content_kind="attachment", identity_preserved=result.identity_preserved)
    return _as_response(result, label="Attachment")
