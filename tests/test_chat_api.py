from __future__ import annotations

import inspect

import fakeredis
import pytest
from fastapi.testclient import TestClient

from chatroom.config import Settings
from chatroom.errors import StorageUnavailable
from chatroom.main import create_app


def test_register_and_list_participants(client: TestClient) -> None:
    resp = client.post("/participants", json={"name": "Alice"})
    assert resp.status_code == 201
    assert resp.json() == {"name": "Alice"}

    resp2 = client.get("/participants")
    assert resp2.status_code == 200
    assert resp2.json() == [{"name": "Alice"}]


def test_register_duplicate_is_409(client: TestClient) -> None:
    assert client.post("/participants", json={"name": "Alice"}).status_code == 201
    assert client.post("/participants", json={"name": "Alice"}).status_code == 409
    assert len(client.get("/participants").json()) == 1


@pytest.mark.parametrize("body", [{}, {"name": ""}, {"name": "x" * 41}, {"name": 42}])
def test_register_validation_is_422(client: TestClient, body: dict) -> None:
    assert client.post("/participants", json=body).status_code == 422


def test_post_and_read_messages(client: TestClient) -> None:
    client.post("/participants", json={"name": "Bob"})

    resp = client.post("/messages", json={"to": "Todos", "text": "hi", "type": "message"}, headers={"User": "Bob"})
    assert resp.status_code == 201
    posted = resp.json()
    assert posted["from"] == "Bob"
    assert posted["type"] == "message"

    resp2 = client.get("/messages", headers={"User": "Anyone"})
    assert resp2.status_code == 200
    data = resp2.json()
    assert [(m["type"], m["from"], m["to"]) for m in data] == [("status", "Bob", "Todos"), ("message", "Bob", "Todos")]
    assert data[0]["text"] == "entra na sala..."
    assert data[1]["text"] == "hi"
    assert set(data[1]) == {"from", "to", "text", "type", "time"}


def test_post_message_rejections_are_422(client: TestClient) -> None:
    good = {"to": "Todos", "text": "hi", "type": "message"}

    # No identity, unknown identity.
    assert client.post("/messages", json=good).status_code == 422
    assert client.post("/messages", json=good, headers={"User": "Mallory"}).status_code == 422

    client.post("/participants", json={"name": "Alice"})
    for bad in [
        {**good, "type": "status"},
        {**good, "text": ""},
        {**good, "text": "x" * 251},
        {"to": "Todos", "text": "hi"},
    ]:
        assert client.post("/messages", json=bad, headers={"User": "Alice"}).status_code == 422


def test_private_messages_and_limit(client: TestClient) -> None:
    for name in ["Alice", "Bob", "Carol"]:
        client.post("/participants", json={"name": name})
    client.post(
        "/messages",
        json={"to": "Bob", "text": "for bob only", "type": "private_message"},
        headers={"User": "Alice"},
    )

    carol = client.get("/messages", headers={"User": "Carol"}).json()
    assert all(m["text"] != "for bob only" for m in carol)

    bob_last = client.get("/messages?limit=1", headers={"User": "Bob"}).json()
    assert [m["text"] for m in bob_last] == ["for bob only"]


@pytest.mark.parametrize("limit", ["0", "-1", "abc"])
def test_bad_limit_is_422(client: TestClient, limit: str) -> None:
    assert client.get(f"/messages?limit={limit}", headers={"User": "Alice"}).status_code == 422


def test_status_heartbeat(client: TestClient) -> None:
    assert client.post("/status", headers={"User": "Alice"}).status_code == 404
    assert client.post("/status").status_code == 404

    client.post("/participants", json={"name": "Alice"})
    assert client.post("/status", headers={"User": "Alice"}).status_code == 200


def test_leave_room(client: TestClient) -> None:
    client.post("/participants", json={"name": "Alice"})

    assert client.delete("/participants", headers={"User": "Alice"}).status_code == 200
    assert client.get("/participants").json() == []
    assert client.delete("/participants", headers={"User": "Alice"}).status_code == 404

    texts = [m["text"] for m in client.get("/messages").json()]
    assert texts == ["entra na sala...", "sai da sala..."]


def test_healthcheck(client: TestClient) -> None:
    resp = client.get("/healthcheck")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_storage_outage_is_500() -> None:
    server = fakeredis.FakeServer()
    r = fakeredis.FakeRedis(server=server, decode_responses=True)
    app = create_app(settings=Settings(sweep_enabled=False), redis_factory=lambda _settings: r)

    with TestClient(app) as c:
        server.connected = False
        assert c.get("/participants").status_code == 500
        assert c.get("/healthcheck").status_code == 500


def test_startup_aborts_when_storage_is_unreachable() -> None:
    server = fakeredis.FakeServer()
    server.connected = False
    r = fakeredis.FakeRedis(server=server, decode_responses=True)
    app = create_app(settings=Settings(sweep_enabled=False), redis_factory=lambda _settings: r)

    with pytest.raises(StorageUnavailable):
        with TestClient(app):
            pass


def test_sweeper_follows_app_lifecycle(r: fakeredis.FakeRedis) -> None:
    app = create_app(settings=Settings(sweep_interval_s=60), redis_factory=lambda _settings: r)

    with TestClient(app):
        assert app.state.sweeper is not None
        assert app.state.sweeper.running

    assert app.state.sweeper is None


def test_routes_run_in_the_threadpool() -> None:
    # redis-py is blocking; async handlers would stall the event loop.
    from fastapi.routing import APIRoute

    from chatroom.api.routes import router

    routes = [route for route in router.routes if isinstance(route, APIRoute)]
    assert routes
    for route in routes:
        assert not inspect.iscoroutinefunction(route.endpoint), route.path


def test_unknown_paths_are_404(client: TestClient) -> None:
    assert client.get("/info").status_code == 404
