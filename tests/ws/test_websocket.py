"""WebSocket endpoint tests: auth and the subscribe/ping protocol."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from mathmaxxer.auth.jwt import create_access_token
from mathmaxxer.main import create_app


@pytest.fixture
def ws_client() -> TestClient:
    return TestClient(create_app())


def test_invalid_token_rejected(ws_client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with ws_client.websocket_connect("/ws?token=garbage"):
            pass
    assert exc_info.value.code == 4001


def test_expired_token_rejected(ws_client: TestClient) -> None:
    token = create_access_token("user-expired", expires_minutes=-5)
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with ws_client.websocket_connect(f"/ws?token={token}"):
            pass
    assert exc_info.value.code == 4001


def test_protocol(ws_client: TestClient) -> None:
    token = create_access_token("user-ws")
    with ws_client.websocket_connect(f"/ws?token={token}") as ws:
        ws.send_json({"action": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        ws.send_json({"action": "subscribe", "channel": "matchmaking"})
        assert ws.receive_json() == {"type": "subscribed", "channel": "matchmaking"}

        ws.send_json({"action": "subscribe", "channel": "mining"})
        assert ws.receive_json() == {"type": "error", "message": "Invalid channel: mining"}

        ws.send_json({"action": "unsubscribe", "channel": "matchmaking"})
        assert ws.receive_json() == {"type": "unsubscribed", "channel": "matchmaking"}

        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "message": "Invalid JSON"}

        ws.send_json({"action": "dance"})
        assert ws.receive_json() == {"type": "error", "message": "Unknown action: dance"}
