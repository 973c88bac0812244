"""Publish game events over Redis pub/sub.

Per-user events go to ``ws:user:{user_id}`` and broadcasts to
``pubsub:{channel}``; ``PubSubBridge`` fans both out to websocket clients.
Publishing never fails the calling request.
"""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

# Per-user event names
GAME_COMPLETED = "game_completed"
CHALLENGE_COMPLETED = "challenge_completed"
MATCH_FOUND = "match_found"
MATCH_COMPLETED = "match_completed"

# Broadcast channels
QUEUE_UPDATE = "queue_update"
MATCH_UPDATE = "match_update"


async def publish_to_user(redis: object | None, user_id: str, event: str, data: dict[str, Any]) -> None:
    """Publish ``{"event", "data"}`` to the user's personal channel."""
    if redis is None:
        return
    try:
        await redis.publish(  # type: ignore[union-attr]
            f"ws:user:{user_id}",
            json.dumps({"event": event, "data": data}, default=str),
        )
    except Exception:
        logger.warning("Failed to publish %s via ws:user:%s", event, user_id, exc_info=True)


async def publish_broadcast(redis: object | None, channel: str, payload: dict[str, Any]) -> None:
    """Publish a payload to a ``pubsub:`` broadcast channel."""
    if redis is None:
        return
    try:
        await redis.publish(  # type: ignore[union-attr]
            f"pubsub:{channel}",
            json.dumps(payload, default=str),
        )
    except Exception:
        logger.warning("Failed to publish to pubsub:%s", channel, exc_info=True)
