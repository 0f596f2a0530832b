"""WebSocket transport tests — control frames over a real socket."""

import time

from fastapi.testclient import TestClient


def _wait_for(predicate, timeout=1.0):
    deadline = time.monotonic() + timeout
    while not predicate() and time.monotonic() < deadline:
        time.sleep(0.01)
    return predicate()


def test_subscribe_over_websocket(app, gateway):
    client = TestClient(app)
    with client.websocket_connect("/ws?user_id=u1") as ws:
        ws.send_json({"event": "subscribe", "data": ["chat:m1", "user:u1"]})
        ws.send_json({"event": "ping"})
        assert ws.receive_json() == {"event": "pong", "data": None}

        [conn] = gateway.members_of("chat:m1")
        assert conn.user_id == "u1"
        assert gateway.rooms_of(conn) == {"chat:m1", "user:u1"}

        ws.send_json({"event": "unsubscribe", "data": ["chat:m1"]})
        ws.send_json({"event": "ping"})
        ws.receive_json()
        assert gateway.members_of("chat:m1") == []

    assert _wait_for(lambda: gateway.connection_count == 0)
    assert gateway.members_of("user:u1") == []


def test_garbage_frames_are_ignored(app, gateway):
    client = TestClient(app)
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        ws.send_json({"event": "subscribe", "data": "chat:m1"})
        ws.send_json({"event": "ping"})
        assert ws.receive_json()["event"] == "pong"
        assert gateway.members_of("chat:m1") == []
        assert gateway.connection_count == 1


def test_binary_frames_are_ignored(app, gateway):
    client = TestClient(app)
    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b'{"event": "subscribe", "data": ["chat:m1"]}')
        ws.send_bytes(b"\x00\xff")
        ws.send_json({"event": "ping"})
        assert ws.receive_json() == {"event": "pong", "data": None}
        assert gateway.members_of("chat:m1") == []
        assert gateway.connection_count == 1
