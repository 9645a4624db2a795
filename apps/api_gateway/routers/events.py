"""
Intake событий CMS (сторона source).

CMS сообщает об изменении контента, узел решает, ставить ли задачу.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from apps.api_gateway.deps import auth_dep, get_event_intake
from content_replicator.common.errors import StoreUnavailableError
from content_replicator.domain.enums import ContentKind
from content_replicator.services.intake import EventIntake

router = APIRouter(dependencies=[Depends(auth_dep)])


class ContentChangedRequest(BaseModel):
    content_id: int = Field(ge=1)
    kind: ContentKind = ContentKind.document
    status: str


class AttachmentUploadedRequest(BaseModel):
    attachment_id: int = Field(ge=1)


class EnqueueResponse(BaseModel):
    enqueued: bool


@router.post("/events/content-changed", response_model=EnqueueResponse)
def content_changed(
    req: ContentChangedRequest,
    intake: EventIntake = Depends(get_event_intake),
) -> EnqueueResponse:
    try:
        enqueued = intake.on_content_changed(req.content_id, req.kind, req.status)
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": e.code, "message": e.message},
        ) from e
    return EnqueueResponse(enqueued=enqueued)


@router.post("/events/attachment-uploaded", response_model=EnqueueResponse)
def attachment_uploaded(
    req: AttachmentUploadedRequest,
    intake: EventIntake = Depends(get_event_intake),
) -> EnqueueResponse:
    try:
        enqueued = intake.on_attachment_uploaded(req.attachment_id)
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": e.code, "message": e.message},
        ) from e
    return EnqueueResponse(enqueued=enqueued)
