"""Tests for the control API."""

import pytest
from fastapi.testclient import TestClient

from offline_sync.main import app
from offline_sync.services.transport import TransportResult


@pytest.fixture
def client(make_engine, storage):
    app.state.engine_factory = lambda _settings: make_engine()
    with TestClient(app) as test_client:
        yield test_client
    del app.state.engine_factory


def _queue(client, action_type="CREATE_ORDER", payload=None, **extra):
    body = {"type": action_type, "payload": payload or {"items": [{"menuItemId": "taco"}]}, **extra}
    return client.post("/api/queue", json=body)


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["health"] == "/health"


def test_health(client):
    response = client.get("/health")

    data = response.json()
    assert response.status_code == 200
    assert data["status"] == "operational"
    assert data["storage"] == "healthy"
    assert data["connectivity"] == "online"


def test_enqueue_uses_default_priority(client):
    response = _queue(client)

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["action_id"].startswith("action_")
    assert data["priority"] == "high"
    assert data["queue_length"] == 1


def test_enqueue_rejects_unknown_type(client):
    response = _queue(client, action_type="DELETE_ACCOUNT")
    assert response.status_code == 422


def test_queue_listing_is_in_drain_order(client):
    low = _queue(client, "ADD_TO_CART", {"menuItemId": "nachos"}).json()["action_id"]
    high = _queue(client).json()["action_id"]

    data = client.get("/api/queue").json()

    assert data["total"] == 2
    assert [a["id"] for a in data["actions"]] == [high, low]
    assert data["sync_state"] == "idle"


def test_delete_queued_action(client):
    action_id = _queue(client).json()["action_id"]

    assert client.delete(f"/api/queue/{action_id}").status_code == 200
    assert client.delete(f"/api/queue/{action_id}").status_code == 404
    assert client.get("/api/queue").json()["total"] == 0


def test_clear_queue(client):
    _queue(client)
    _queue(client, "ADD_TO_CART", {"menuItemId": "nachos"})

    response = client.delete("/api/queue")

    assert response.status_code == 200
    assert response.json()["cleared"] == 2
    assert response.json()["queue_length"] == 0
    assert client.get("/api/queue").json()["total"] == 0


def test_sync_drains_queue(client):
    _queue(client)

    data = client.post("/api/sync").json()

    assert data["started"] is True
    assert data["attempted"] == 1
    assert data["succeeded"] == 1
    assert data["sync_state"] == "idle"
    assert client.post("/api/sync").json()["started"] is False


def test_conflict_listing_and_resolution(client, transport):
    transport.script_fetch(
        TransportResult.success({"id": "ord_1", "status": "ready", "updatedAt": "2999-01-01T00:00:00Z"})
    )
    action_id = _queue(client, "UPDATE_ORDER", {"id": "ord_1", "status": "cancelled"}).json()["action_id"]

    assert client.post("/api/sync").json()["conflicted"] == 1

    conflicts = client.get("/api/conflicts").json()
    assert conflicts["total"] == 1
    assert conflicts["conflicts"][0]["action_id"] == action_id
    assert conflicts["conflicts"][0]["server_snapshot"]["status"] == "ready"

    resolved = client.post(f"/api/conflicts/{action_id}/resolve", json={"use_server": False})
    assert resolved.status_code == 200
    assert resolved.json()["resolution"] == "local"
    requeued = resolved.json()["requeued_action_id"]
    assert [a["id"] for a in client.get("/api/queue").json()["actions"]] == [requeued]

    again = client.post(f"/api/conflicts/{action_id}/resolve", json={"use_server": True})
    assert again.status_code == 200
    assert again.json()["success"] is False
    assert again.json()["action_id"] == action_id


def test_connectivity_report_controls_sync(client):
    offline = client.put("/api/connectivity", json={"is_connected": False})
    assert offline.status_code == 200
    assert offline.json()["is_online"] is False

    _queue(client)
    assert client.post("/api/sync").json()["started"] is False
    assert client.get("/api/sync/status").json()["is_online"] is False


def test_auto_sync_toggle(client):
    started = client.post("/api/sync/auto", json={"enabled": True, "interval_ms": 60000})
    assert started.json()["auto_sync_running"] is True

    stopped = client.post("/api/sync/auto", json={"enabled": False})
    assert stopped.json()["auto_sync_running"] is False


def test_status(client):
    _queue(client)

    data = client.get("/api/sync/status").json()

    assert data["queue_length"] == 1
    assert data["conflict_count"] == 0
    assert data["storage_backend"] == "memory"
    assert data["transport"] == "scripted"


def test_events_after_sync(client):
    _queue(client)
    client.post("/api/sync")

    data = client.get("/api/events", params={"limit": 10}).json()

    assert data["total"] == 1
    assert data["events"][0]["kind"] == "succeeded"


def test_storage_failure_returns_503(client, storage):
    storage.fail_writes = True

    response = _queue(client)

    assert response.status_code == 503
    assert response.json()["error"] == "Storage Unavailable"
    assert client.get("/api/queue").json()["total"] == 0
    assert client.get("/health").json()["status"] == "degraded"
