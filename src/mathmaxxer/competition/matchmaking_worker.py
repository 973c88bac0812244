"""Matchmaking sweep arq worker: prunes stale queue entries and retries pairing.

Re-running ``find_match`` periodically lets rating windows keep widening for
players who are waiting without any client polling.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import redis.asyncio as aioredis
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from mathmaxxer.competition.matchmaking_service import find_match
from mathmaxxer.config import get_settings
from mathmaxxer.database import close_db, get_session_factory, init_db
from mathmaxxer.db.models import MatchmakingQueueEntry
from mathmaxxer.middleware.logging import setup_logging

logger = logging.getLogger(__name__)


async def prune_stale_entries(db: AsyncSession, ttl_seconds: int) -> int:
    """Delete queue entries older than ``ttl_seconds``. Returns rows removed."""
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=ttl_seconds)
    result = await db.execute(
        delete(MatchmakingQueueEntry)
        .where(MatchmakingQueueEntry.created_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount


async def retry_pairings(db: AsyncSession, redis: object | None) -> int:
    """Run ``find_match`` for every queued player, oldest first. Returns matches created."""
    result = await db.execute(
        select(
            MatchmakingQueueEntry.user_id,
            MatchmakingQueueEntry.difficulty,
            MatchmakingQueueEntry.time_control,
            MatchmakingQueueEntry.iq_rating,
        ).order_by(MatchmakingQueueEntry.created_at, MatchmakingQueueEntry.id)
    )
    waiting = result.all()
    await db.commit()

    created = 0
    for user_id, difficulty, time_control, iq_rating in waiting:
        still_queued = await db.execute(
            select(MatchmakingQueueEntry.id).where(MatchmakingQueueEntry.user_id == user_id)
        )
        if still_queued.first() is None:
            # Claimed as an opponent earlier in this sweep, or left
            continue
        try:
            match_id = await find_match(db, redis, user_id, difficulty, time_control, iq_rating)
        except Exception:
            logger.exception("Pairing retry failed for user %s", user_id)
            continue
        if match_id is not None:
            created += 1
    return created


async def sweep_matchmaking_queue(ctx: dict) -> dict[str, int]:
    """Prune expired entries, then retry pairing for the rest. Runs every 15 seconds."""
    settings = get_settings()
    async with get_session_factory()() as db:
        pruned = await prune_stale_entries(db, settings.matchmaking_queue_ttl_seconds)
        created = await retry_pairings(db, ctx.get("redis"))

    if pruned or created:
        logger.info("Matchmaking sweep: pruned=%d matches=%d", pruned, created)
    return {"pruned": pruned, "matches": created}


async def matchmaking_worker_startup(ctx: dict) -> None:
    """Initialize connections on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)
    ctx["redis"] = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=10,
    )
    logger.info("Matchmaking worker started")


async def matchmaking_worker_shutdown(ctx: dict) -> None:
    """Clean up on worker shutdown."""
    redis_client = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("Matchmaking worker shut down")
