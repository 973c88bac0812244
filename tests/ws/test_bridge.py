"""Tests for the Redis pub/sub to WebSocket bridge."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mathmaxxer.ws.bridge import CHANNEL_MAP, PubSubBridge
from mathmaxxer.ws.manager import VALID_CHANNELS


class TestChannelMapping:
    def test_all_redis_channels_mapped(self) -> None:
        for redis_ch, ws_ch in CHANNEL_MAP.items():
            assert ws_ch in VALID_CHANNELS, f"{redis_ch} maps to unknown {ws_ch}"

    def test_channels(self) -> None:
        assert CHANNEL_MAP["pubsub:queue_update"] == "matchmaking"
        assert CHANNEL_MAP["pubsub:match_update"] == "matches"


class TestDispatch:
    @pytest.mark.asyncio
    async def test_broadcast_message(self) -> None:
        bridge = PubSubBridge(MagicMock())
        message = {
            "type": "message",
            "channel": "pubsub:queue_update",
            "data": json.dumps({"queue_count": 3}),
        }
        with patch("mathmaxxer.ws.bridge.manager") as mock_manager:
            mock_manager.broadcast_to_channel = AsyncMock(return_value=2)
            assert await bridge.dispatch(message) == 2
            mock_manager.broadcast_to_channel.assert_awaited_once_with(
                "matchmaking", {"type": "queue_update", "queue_count": 3}
            )

    @pytest.mark.asyncio
    async def test_user_message(self) -> None:
        bridge = PubSubBridge(MagicMock())
        message = {
            "type": "pmessage",
            "pattern": "ws:user:*",
            "channel": b"ws:user:abc-123",
            "data": json.dumps({"event": "match_found", "data": {"id": "m1"}}).encode(),
        }
        with patch("mathmaxxer.ws.bridge.manager") as mock_manager:
            mock_manager.send_to_user_direct = AsyncMock(return_value=1)
            assert await bridge.dispatch(message) == 1
            mock_manager.send_to_user_direct.assert_awaited_once_with(
                "abc-123", {"type": "match_found", "payload": {"id": "m1"}}
            )

    @pytest.mark.asyncio
    async def test_invalid_json_ignored(self) -> None:
        bridge = PubSubBridge(MagicMock())
        message = {"type": "message", "channel": "pubsub:queue_update", "data": "{not json"}
        with patch("mathmaxxer.ws.bridge.manager") as mock_manager:
            mock_manager.broadcast_to_channel = AsyncMock()
            assert await bridge.dispatch(message) == 0
            mock_manager.broadcast_to_channel.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unmapped_channel_ignored(self) -> None:
        bridge = PubSubBridge(MagicMock())
        message = {"type": "message", "channel": "pubsub:other", "data": "{}"}
        with patch("mathmaxxer.ws.bridge.manager") as mock_manager:
            mock_manager.broadcast_to_channel = AsyncMock()
            assert await bridge.dispatch(message) == 0


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_forwards_then_stops(self) -> None:
        bridge = PubSubBridge(MagicMock())
        messages = [
            {"type": "message", "channel": "pubsub:match_update", "data": json.dumps({"id": "m1"})},
            None,
        ]

        async def fake_get_message(**kwargs: object) -> dict | None:
            if messages:
                return messages.pop(0)
            await bridge.stop()
            return None

        mock_pubsub = MagicMock()
        mock_pubsub.get_message = fake_get_message
        mock_pubsub.subscribe = AsyncMock()
        mock_pubsub.psubscribe = AsyncMock()
        mock_pubsub.unsubscribe = AsyncMock()
        mock_pubsub.punsubscribe = AsyncMock()
        mock_pubsub.aclose = AsyncMock()
        bridge.redis.pubsub = MagicMock(return_value=mock_pubsub)

        with patch("mathmaxxer.ws.bridge.manager") as mock_manager:
            mock_manager.broadcast_to_channel = AsyncMock(return_value=1)
            await bridge.start()
            mock_manager.broadcast_to_channel.assert_awaited_once_with(
                "matches", {"type": "match_update", "id": "m1"}
            )

        mock_pubsub.subscribe.assert_awaited_once_with(*CHANNEL_MAP.keys())
        mock_pubsub.psubscribe.assert_awaited_once_with("ws:user:*")
        mock_pubsub.aclose.assert_awaited_once()
