"""
HTTP-клиент протокола репликации (сторона source).

Назначение:
- отправка replicate-document / replicate-attachment на target
- Bearer-авторизация общим секретом
- любой исход превращается в ReplicationResult (ошибки возвращаются как данные)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests
from pydantic import BaseModel

from content_replicator.common.config import ReplicationConfig
from content_replicator.common.logging import get_sync_logger
from content_replicator.contracts.sync_api import (
    ATTACHMENTS_PATH,
    DOCUMENTS_PATH,
    AttachmentSyncRequest,
    DocumentSyncRequest,
)

log = get_sync_logger()


@dataclass(frozen=True)
class ReplicationResult:
    success: bool
    message: str
    target_id: int | None = None
    identity_preserved: bool = True

    @classmethod
    def failure(cls, message: str) -> ReplicationResult:
        return cls(success=False, message=message)


def _error_message(resp: requests.Response) -> str | None:
    try:
        data = resp.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    detail = data.get("detail")
    if isinstance(detail, dict):
        return str(detail.get("message") or "") or None
    if isinstance(detail, str):
        return detail
    return str(data.get("message") or "") or None


class ReplicationClient:
    def __init__(self, config: ReplicationConfig, *, session: requests.Session | None = None) -> None:
        self.config = config
        self._http = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.config.target_base_url and self.config.shared_secret)

    def _post(
        self,
        *,
        path: str,
        body: BaseModel,
        source_id: int,
        timeout_sec: int,
        label: str,
    ) -> ReplicationResult:
        if not self.configured:
            return ReplicationResult.failure("missing configuration")

        url = f"{self.config.target_base_url}{path}"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.shared_secret}",
        }
        try:
            resp = self._http.post(
                url,
                json=body.model_dump(mode="json", by_alias=True),
                headers=headers,
                timeout=timeout_sec,
                verify=self.config.verify_tls,
            )
        except requests.RequestException as e:
            log.warning(
                "sync_transport_error",
                extra={"payload": {"url": url, "content_id": source_id, "err": str(e)[:300]}},
            )
            return ReplicationResult.failure(str(e))

        if not 200 <= resp.status_code < 300:
            log.warning(
                "sync_target_rejected",
                extra={
                    "payload": {
                        "url": url,
                        "content_id": source_id,
                        "status_code": resp.status_code,
                        "detail": (_error_message(resp) or "")[:300],
                    }
                },
            )
            return ReplicationResult.failure(f"HTTP {resp.status_code}")

        data: Any
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict) or not data.get("success"):
            message = (data.get("message") if isinstance(data, dict) else None) or "target reported failure"
            return ReplicationResult.failure(str(message))

        target_id = data.get("id")
        target_id = int(target_id) if target_id is not None else source_id
        preserved = bool(data.get("identityPreserved", target_id == source_id))
        message = f"{label} synced successfully"
        if not preserved:
            message += f" (target id {target_id} differs from source id {source_id})"
        return ReplicationResult(
            success=True,
            message=message,
            target_id=target_id,
            identity_preserved=preserved,
        )

    def replicate_document(self, request: DocumentSyncRequest) -> ReplicationResult:
        return self._post(
            path=DOCUMENTS_PATH,
            body=request,
            source_id=request.document.id,
            timeout_sec=self.config.document_timeout_sec,
            label="Document",
        )

    def replicate_attachment(self, request: AttachmentSyncRequest) -> ReplicationResult:
        return self._post(
            path=ATTACHMENTS_PATH,
            body=request,
            source_id=request.descriptor.id,
            timeout_sec=self.config.attachment_timeout_sec,
            label="Attachment",
        )
