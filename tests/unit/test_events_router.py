from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from apps.api_gateway.main import app
from content_replicator.common.config import ReplicationConfig
from content_replicator.queue.store import QueueStore

HEADERS = {"X-API-Key": "cms-key"}


@pytest.fixture()
def events_settings(sync_settings, replicator_db):
    sync_settings.auth_mode = "api_key"
    sync_settings.api_keys = "cms-key"
    sync_settings.sync_role = "source"
    return sync_settings


def test_content_changed_enqueues_once(events_settings) -> None:
    client = TestClient(app)
    body = {"content_id": 42, "kind": "document", "status": "published"}

    assert client.post("/v1/events/content-changed", json=body, headers=HEADERS).json() == {
        "enqueued": True
    }
    assert client.post("/v1/events/content-changed", json=body, headers=HEADERS).json() == {
        "enqueued": False
    }
    assert QueueStore(ReplicationConfig.from_settings()).pending_count() == 1


def test_draft_is_ignored(events_settings) -> None:
    resp = TestClient(app).post(
        "/v1/events/content-changed",
        json={"content_id": 1, "status": "draft"},
        headers=HEADERS,
    )
    assert resp.json() == {"enqueued": False}


def test_attachment_uploaded(events_settings) -> None:
    resp = TestClient(app).post(
        "/v1/events/attachment-uploaded", json={"attachment_id": 7}, headers=HEADERS
    )
    assert resp.status_code == 200
    assert resp.json() == {"enqueued": True}


def test_events_require_api_key(events_settings) -> None:
    resp = TestClient(app).post(
        "/v1/events/attachment-uploaded", json={"attachment_id": 7}
    )
    assert resp.status_code == 401
