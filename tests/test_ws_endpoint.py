from types import SimpleNamespace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.websockets import posts as posts_ws

SOCKET_ID = "0b7c8a52-3f0e-4f55-9a53-2d8f1a6f9e11"


class _NullSession:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc) -> None:
        return None


@pytest.fixture
def client(monkeypatch) -> TestClient:
    async def lookup(db, websocket_id):
        return SimpleNamespace(id=7) if websocket_id == SOCKET_ID else None

    monkeypatch.setattr(posts_ws, "get_user_by_websocket_id", lookup)
    monkeypatch.setattr(posts_ws.db_session, "SessionLocal", _NullSession)
    app = FastAPI()
    app.include_router(posts_ws.posts_ws_router, prefix="/ws")
    return TestClient(app)


def test_rejects_malformed_socket_id(client) -> None:
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/posts?websocketId=nope") as socket:
            socket.receive_json()
    assert exc.value.code == 4401


def test_rejects_unknown_user(client) -> None:
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/posts?websocketId=11111111-2222-3333-4444-555555555555") as socket:
            socket.receive_json()
    assert exc.value.code == 4401


def test_ping_and_subscribe(client) -> None:
    with client.websocket_connect(f"/ws/posts?websocketId={SOCKET_ID}") as socket:
        socket.send_text("ping")
        assert socket.receive_json() == {"type": "pong"}
        socket.send_text("subscribe_posts")
        assert socket.receive_json() == {"type": "subscribed", "room": "user:7"}
