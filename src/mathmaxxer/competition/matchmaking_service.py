"""Matchmaking queue and pairing.

Pairing is serialized per (difficulty, time_control) bucket: a Redis lock when
Redis is available, an in-process asyncio.Lock otherwise. Within the lock a
candidate entry is claimed with ``DELETE ... RETURNING`` so an entry can only
ever be consumed by one pairing.

The allowed rating gap widens with time spent in the queue; see ``rating_window``.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from redis.exceptions import LockError, LockNotOwnedError
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mathmaxxer.competition.match_service import SOURCE_MATCHMAKING, STATUS_IN_PROGRESS, match_summary
from mathmaxxer.config import Settings, get_settings
from mathmaxxer.db.models import Match, MatchmakingQueueEntry, Profile
from mathmaxxer.errors import NotFound, ValidationError
from mathmaxxer.games.session_service import validate_game_options
from mathmaxxer.ws.publisher import MATCH_FOUND, MATCH_UPDATE, QUEUE_UPDATE, publish_broadcast, publish_to_user

logger = logging.getLogger(__name__)

# Fallback bucket locks when Redis is not configured (single process only)
_local_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything is stored as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def rating_window(waited_seconds: float, settings: Settings | None = None) -> int:
    """Allowed rating gap after waiting ``waited_seconds`` in the queue.

    initial + step for every full ``step_seconds`` waited, capped at max.
    """
    settings = settings or get_settings()
    steps = int(max(0.0, waited_seconds) // max(1, settings.matchmaking_rating_window_step_seconds))
    window = settings.matchmaking_rating_window_initial + settings.matchmaking_rating_window_step * steps
    return min(window, settings.matchmaking_rating_window_max)


def bucket_key(difficulty: str, time_control: str) -> str:
    return f"matchmaking:lock:{difficulty}:{time_control}"


@asynccontextmanager
async def bucket_lock(redis: Any, difficulty: str, time_control: str, settings: Settings) -> AsyncIterator[None]:
    """Serialize pairing for one bucket.

    Raises LockError if not acquired in time, LockNotOwnedError if the Redis
    lock expired before release.
    """
    key = bucket_key(difficulty, time_control)
    if redis is None:
        async with _local_locks[key]:
            yield
        return

    lock = redis.lock(
        key,
        timeout=settings.matchmaking_lock_timeout_seconds,
        blocking_timeout=settings.matchmaking_lock_timeout_seconds,
    )
    async with lock:
        yield


async def queue_count(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(MatchmakingQueueEntry.id)))
    return int(result.scalar_one())


async def _get_entry(db: AsyncSession, user_id: str) -> MatchmakingQueueEntry | None:
    result = await db.execute(
        select(MatchmakingQueueEntry)
        .where(MatchmakingQueueEntry.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _active_match_id(db: AsyncSession, user_id: str) -> str | None:
    """In-progress queue pairing for a user made since their last queue join.

    Matches from create/join and pairings from earlier queue visits are ignored.
    """
    result = await db.execute(
        select(Match.id)
        .join(Profile, Profile.id == user_id)
        .where(
            Match.source == SOURCE_MATCHMAKING,
            Match.status == STATUS_IN_PROGRESS,
            (Match.player1_id == user_id) | (Match.player2_id == user_id),
            Profile.last_queued_at.is_not(None),
            Match.started_at >= Profile.last_queued_at,
        )
        .order_by(Match.started_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def queue_status(db: AsyncSession, user_id: str) -> dict[str, Any]:
    entry = await _get_entry(db, user_id)
    return {
        "in_queue": entry is not None,
        "queue_count": await queue_count(db),
        "match_id": None if entry is not None else await _active_match_id(db, user_id),
    }


async def join_queue(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    difficulty: str,
    time_control: str,
) -> dict[str, Any]:
    """Enqueue the caller with a snapshot of their rating, then try to pair immediately."""
    validate_game_options(difficulty, time_control)

    profile = await db.get(Profile, user_id)
    if profile is None:
        raise NotFound("Profile not found")
    iq_rating = profile.iq_rating

    if await _get_entry(db, user_id) is not None:
        raise ValidationError("Already in matchmaking queue")

    profile.last_queued_at = datetime.now(timezone.utc)
    db.add(MatchmakingQueueEntry(
        user_id=user_id,
        difficulty=difficulty,
        time_control=time_control,
        iq_rating=iq_rating,
    ))
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ValidationError("Already in matchmaking queue") from e

    logger.info("User %s joined queue (%s, %s, rating=%d)", user_id, difficulty, time_control, iq_rating)
    await publish_broadcast(redis, QUEUE_UPDATE, {"queue_count": await queue_count(db)})

    match_id = await find_match(db, redis, user_id, difficulty, time_control, iq_rating)
    return {
        "in_queue": match_id is None,
        "match_id": match_id,
        "queue_count": await queue_count(db),
    }


async def leave_queue(db: AsyncSession, redis: object | None, user_id: str) -> bool:
    """Remove the caller's entry. True if a row was deleted."""
    result = await db.execute(
        delete(MatchmakingQueueEntry)
        .where(MatchmakingQueueEntry.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    removed = result.rowcount > 0
    if removed:
        await db.execute(
            update(Profile)
            .where(Profile.id == user_id)
            .values(last_queued_at=None)
            .execution_options(synchronize_session=False)
        )
    await db.commit()
    if removed:
        logger.info("User %s left queue", user_id)
        await publish_broadcast(redis, QUEUE_UPDATE, {"queue_count": await queue_count(db)})
    return removed


async def find_match(
    db: AsyncSession,
    redis: Any,
    user_id: str,
    difficulty: str,
    time_control: str,
    iq_rating: int | None = None,
    *,
    settings: Settings | None = None,
) -> str | None:
    """Try to pair ``user_id`` with a waiting player. Returns the match id or None.

    The caller stays queued when no compatible opponent exists.
    """
    settings = settings or get_settings()
    match: Match | str | None = None
    try:
        async with bucket_lock(redis, difficulty, time_control, settings):
            match = await _pair_locked(db, user_id, difficulty, time_control, iq_rating, settings)
    except LockNotOwnedError:
        # Pairing already committed; only the release failed
        logger.warning("Matchmaking lock for %s/%s expired before release", difficulty, time_control)
    except LockError:
        logger.warning("Matchmaking lock busy for %s/%s", difficulty, time_control)
        return None

    if match is None or isinstance(match, str):
        return match

    summary = match_summary(match)
    for player_id in (match.player1_id, match.player2_id):
        await publish_to_user(redis, player_id, MATCH_FOUND, summary)
    await publish_broadcast(redis, MATCH_UPDATE, summary)
    await publish_broadcast(redis, QUEUE_UPDATE, {"queue_count": await queue_count(db)})
    return match.id


async def _pair_locked(
    db: AsyncSession,
    user_id: str,
    difficulty: str,
    time_control: str,
    iq_rating: int | None,
    settings: Settings,
) -> Match | str | None:
    """Pairing body, run under the bucket lock.

    Returns the new Match, an existing match id if the caller was already
    paired, or None.
    """
    try:
        own = await _get_entry(db, user_id)
        if own is None:
            return await _active_match_id(db, user_id)
        if own.difficulty != difficulty or own.time_control != time_control:
            return None

        now = datetime.now(timezone.utc)
        rating = own.iq_rating if iq_rating is None else iq_rating
        own_window = rating_window((now - _as_utc(own.created_at)).total_seconds(), settings)

        result = await db.execute(
            select(MatchmakingQueueEntry)
            .where(
                MatchmakingQueueEntry.difficulty == difficulty,
                MatchmakingQueueEntry.time_control == time_control,
                MatchmakingQueueEntry.user_id != user_id,
            )
            .order_by(MatchmakingQueueEntry.created_at, MatchmakingQueueEntry.id)
        )
        candidates = list(result.scalars().all())

        for candidate in candidates:
            waited = (now - _as_utc(candidate.created_at)).total_seconds()
            window = max(own_window, rating_window(waited, settings))
            if abs(candidate.iq_rating - rating) > window:
                continue

            claimed = await db.execute(
                delete(MatchmakingQueueEntry)
                .where(MatchmakingQueueEntry.id == candidate.id)
                .returning(MatchmakingQueueEntry.user_id)
                .execution_options(synchronize_session=False)
            )
            opponent_id = claimed.scalar_one_or_none()
            if opponent_id is None:
                continue

            await db.execute(
                delete(MatchmakingQueueEntry)
                .where(MatchmakingQueueEntry.id == own.id)
                .execution_options(synchronize_session=False)
            )
            match = Match(
                player1_id=opponent_id,
                player2_id=user_id,
                difficulty=difficulty,
                time_control=time_control,
                status=STATUS_IN_PROGRESS,
                started_at=now,
                source=SOURCE_MATCHMAKING,
            )
            db.add(match)
            await db.commit()
            await db.refresh(match)
            logger.info(
                "Match %s found: %s vs %s (%s, %s, gap=%d, window=%d)",
                match.id, opponent_id, user_id, difficulty, time_control,
                abs(candidate.iq_rating - rating), window,
            )
            return match
    except Exception:
        await db.rollback()
        raise

    # End the read transaction so the next attempt sees fresh rows
    await db.commit()
    return None
