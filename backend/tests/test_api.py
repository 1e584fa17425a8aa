"""Tests for the HTTP API and live update endpoints."""
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from uptimewatch.main import create_app
from uptimewatch.routers.stream import format_event, stream_updates
from uptimewatch.services.checker import CheckerService
from uptimewatch.services.publisher import UpdatePublisher
from uptimewatch.services.state_store import MemoryStateStore

from .conftest import FakeExecutor, make_monitor


@pytest.fixture
def client():
    store = MemoryStateStore([
        make_monitor("web", interval=60),
        make_monitor("nowhere", type="ping", url=None),
    ])
    checker = CheckerService([FakeExecutor("http"), FakeExecutor("ping")])
    app = create_app(store=store, checker=checker, start_scheduler=False)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["scheduler_running"] is False


def test_list_monitors_wire_shape(client):
    response = client.get("/api/monitors")
    assert response.status_code == 200
    web = response.json()[0]
    assert set(web) == {
        "id", "name", "url", "type", "interval", "lastStatus", "lastChecked",
        "lastCode", "lastPing", "uptime24", "uptime30", "history",
    }
    assert web["lastStatus"] is None


def test_create_monitor_with_defaults(client):
    response = client.post("/api/monitors", json={"url": "example.org"})
    assert response.status_code == 200
    created = response.json()
    assert created["id"]
    assert created["type"] == "http"
    assert created["name"] == "unnamed"
    assert created["interval"] == 60

    ids = [m["id"] for m in client.get("/api/monitors").json()]
    assert ids == ["web", "nowhere", created["id"]]


def test_create_ping_monitor_with_target_alias(client):
    response = client.post("/api/monitors", json={"id": "gw", "type": "ping", "target": "192.168.1.1"})
    assert response.json()["url"] == "192.168.1.1"


def test_create_duplicate_id_conflicts(client):
    response = client.post("/api/monitors", json={"id": "web", "url": "example.org"})
    assert response.status_code == 409


def test_get_monitor(client):
    assert client.get("/api/monitors/web").json()["id"] == "web"
    assert client.get("/api/monitors/missing").status_code == 404


def test_delete_monitor(client):
    assert client.delete("/api/monitors/web").json() == {"removed": 1}
    assert client.delete("/api/monitors/web").json() == {"removed": 0}
    assert [m["id"] for m in client.get("/api/monitors").json()] == ["nowhere"]


def test_check_now_forces_a_pass(client):
    first = client.post("/api/check-now").json()
    second = client.post("/api/check-now").json()

    web, nowhere = second
    assert web["lastStatus"] == "up"
    assert len(first[0]["history"]) == 1
    assert len(web["history"]) == 2
    assert web["uptime24"] == 100.0
    assert nowhere["lastStatus"] == "unknown"
    assert nowhere["history"] == []


def test_websocket_receives_snapshot_then_updates(client):
    with client.websocket_connect("/ws") as websocket:
        initial = websocket.receive_json()
        assert [m["id"] for m in initial] == ["web", "nowhere"]

        client.post("/api/check-now")
        update = websocket.receive_json()
        assert update[0]["lastStatus"] == "up"
        assert update[0]["history"][0]["code"] == 200


def test_event_stream_frame():
    assert format_event([{"id": "web"}]) == 'data: [{"id": "web"}]\n\n'


@pytest.mark.asyncio
async def test_event_stream_subscribes_only_while_body_is_sent():
    publisher = UpdatePublisher(MemoryStateStore([make_monitor("web")]))
    request = MagicMock()
    request.is_disconnected = AsyncMock(return_value=False)

    response = await stream_updates(request, publisher=publisher)
    # A client that leaves before the body starts leaves nothing behind
    assert publisher.subscriber_count == 0

    body = response.body_iterator
    assert await body.__anext__() == "\n"
    assert publisher.subscriber_count == 1
    assert (await body.__anext__()).startswith('data: [{"id": "web"')

    await body.aclose()
    assert publisher.subscriber_count == 0
