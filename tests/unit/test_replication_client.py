from __future__ import annotations

from dataclasses import replace

import requests

from content_replicator.contracts.sync_api import (
    AttachmentDescriptor,
    AttachmentSyncRequest,
    DocumentFields,
    DocumentSyncRequest,
)
from content_replicator.replication.client import ReplicationClient


class _FakeResponse:
    def __init__(self, status_code: int, data=None) -> None:
        self.status_code = status_code
        self._data = data

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data


class _FakeHttp:
    def __init__(self, response: _FakeResponse | None = None, exc: Exception | None = None) -> None:
        self.response = response
        self.exc = exc
        self.calls: list[dict] = []

    def post(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        if self.exc is not None:
            raise self.exc
        return self.response


def _doc_request(doc_id: int = 42) -> DocumentSyncRequest:
    return DocumentSyncRequest(
        document=DocumentFields(id=doc_id, title="Hello"),
        extended_attributes={"subtitle": ["a", "b"]},
    )


def _att_request(att_id: int = 7) -> AttachmentSyncRequest:
    return AttachmentSyncRequest(
        descriptor=AttachmentDescriptor(id=att_id, file_name="a.txt", mime_type="text/plain"),
        payload_base64="aGVsbG8=",
    )


def test_document_success_sends_bearer_and_camel_case(source_config) -> None:
    http = _FakeHttp(_FakeResponse(200, {"success": True, "id": 42, "identityPreserved": True}))
    result = ReplicationClient(source_config, session=http).replicate_document(_doc_request())

    assert result.success is True
    assert result.target_id == 42
    assert result.message == "Document synced successfully"

    call = http.calls[0]
    assert call["url"] == "http://target.test/sync/v1/documents"
    assert call["headers"]["Authorization"] == "Bearer test-secret"
    assert call["timeout"] == 30
    assert call["verify"] is True
    assert call["json"]["document"]["id"] == 42
    assert call["json"]["extendedAttributes"] == {"subtitle": ["a", "b"]}
    assert call["json"]["classificationGroups"] == {}


def test_attachment_uses_longer_timeout(source_config) -> None:
    http = _FakeHttp(_FakeResponse(200, {"success": True, "id": 7}))
    result = ReplicationClient(source_config, session=http).replicate_attachment(_att_request())

    assert result.success is True
    assert result.message == "Attachment synced successfully"
    assert http.calls[0]["url"] == "http://target.test/sync/v1/attachments"
    assert http.calls[0]["timeout"] == 60
    assert http.calls[0]["json"]["payloadBase64"] == "aGVsbG8="


def test_identity_divergence_is_success_with_notice(source_config) -> None:
    http = _FakeHttp(_FakeResponse(200, {"success": True, "id": 43, "identityPreserved": False}))
    result = ReplicationClient(source_config, session=http).replicate_document(_doc_request(42))

    assert result.success is True
    assert result.identity_preserved is False
    assert result.message == "Document synced successfully (target id 43 differs from source id 42)"


def test_missing_configuration_makes_no_request(source_config) -> None:
    http = _FakeHttp(_FakeResponse(200, {"success": True}))
    client = ReplicationClient(replace(source_config, shared_secret=""), session=http)

    result = client.replicate_document(_doc_request())
    assert result.success is False
    assert result.message == "missing configuration"
    assert http.calls == []


def test_non_2xx_reports_status_code(source_config) -> None:
    http = _FakeHttp(_FakeResponse(401, {"detail": {"code": "unauthorized", "message": "invalid bearer token"}}))
    result = ReplicationClient(source_config, session=http).replicate_document(_doc_request())

    assert result.success is False
    assert result.message == "HTTP 401"


def test_transport_error_message_is_kept(source_config) -> None:
    http = _FakeHttp(exc=requests.ConnectionError("connection refused"))
    result = ReplicationClient(source_config, session=http).replicate_document(_doc_request())

    assert result.success is False
    assert result.message == "connection refused"


def test_target_reported_failure(source_config) -> None:
    http = _FakeHttp(_FakeResponse(200, {"success": False, "message": "Post not applied"}))
    result = ReplicationClient(source_config, session=http).replicate_document(_doc_request())
    assert result.success is False
    assert result.message == "Post not applied"

    http = _FakeHttp(_FakeResponse(200))
    result = ReplicationClient(source_config, session=http).replicate_document(_doc_request())
    assert result.message == "target reported failure"


def test_verify_tls_flag_is_passed(source_config) -> None:
    http = _FakeHttp(_FakeResponse(200, {"success": True, "id": 42}))
    ReplicationClient(replace(source_config, verify_tls=False), session=http).replicate_document(
        _doc_request()
    )
    assert http.calls[0]["verify"] is False
