"""Daily challenge completion.

Recording the game and granting the reward are separate outcomes: a score
below target still completes the session, it just earns nothing.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mathmaxxer.db.models import DailyChallenge, UserChallengeCompletion
from mathmaxxer.errors import AlreadyCompleted, NotFound, TargetNotMet, ValidationError
from mathmaxxer.games.rating import apply_delta
from mathmaxxer.games.scoring import aggregate_session_score
from mathmaxxer.games.session_service import load_owned_session, lock_profile, mark_session_completed
from mathmaxxer.ws.publisher import CHALLENGE_COMPLETED, publish_to_user

logger = logging.getLogger(__name__)


async def get_today_challenge(db: AsyncSession, user_id: str) -> dict[str, Any]:
    """Today's (UTC) challenge plus whether the caller already completed it."""
    today = datetime.now(timezone.utc).date()
    result = await db.execute(select(DailyChallenge).where(DailyChallenge.challenge_date == today))
    challenge = result.scalar_one_or_none()
    if challenge is None:
        raise NotFound("No daily challenge available today")

    completion = await _get_completion(db, user_id, challenge.id)
    return {
        "id": challenge.id,
        "challenge_date": challenge.challenge_date,
        "difficulty": challenge.difficulty,
        "time_control": challenge.time_control,
        "target_score": challenge.target_score,
        "reward_practice_rating": challenge.reward_practice_rating,
        "reward_iq_rating": challenge.reward_iq_rating,
        "completed": completion is not None,
        "score_achieved": completion.score_achieved if completion else None,
    }


async def _get_completion(db: AsyncSession, user_id: str, challenge_id: str) -> UserChallengeCompletion | None:
    result = await db.execute(
        select(UserChallengeCompletion).where(
            UserChallengeCompletion.user_id == user_id,
            UserChallengeCompletion.challenge_id == challenge_id,
        )
    )
    return result.scalar_one_or_none()


async def complete_daily_challenge_internal(
    db: AsyncSession,
    user_id: str,
    challenge_id: str,
    session_id: str,
    verified_score: int,
) -> dict[str, Any]:
    """Grant the challenge reward inside the caller's transaction (flush only).

    Raises:
        NotFound: unknown challenge.
        AlreadyCompleted: the user already claimed this challenge.
        TargetNotMet: score below target. Nothing is written.
    """
    challenge = await db.get(DailyChallenge, challenge_id)
    if challenge is None:
        raise NotFound("Challenge not found")

    if await _get_completion(db, user_id, challenge_id) is not None:
        raise AlreadyCompleted("Challenge already completed")

    if verified_score < challenge.target_score:
        raise TargetNotMet(verified_score, challenge.target_score)

    db.add(UserChallengeCompletion(
        user_id=user_id,
        challenge_id=challenge_id,
        score_achieved=verified_score,
    ))
    try:
        await db.flush()
    except IntegrityError as e:
        raise AlreadyCompleted("Challenge already completed") from e

    profile = await lock_profile(db, user_id)
    profile.practice_rating = apply_delta(profile.practice_rating, challenge.reward_practice_rating)
    profile.iq_rating = apply_delta(profile.iq_rating, challenge.reward_iq_rating)
    profile.updated_at = datetime.now(timezone.utc)
    await db.flush()

    logger.info(
        "Daily challenge %s rewarded to %s via session %s (score=%d)",
        challenge_id, user_id, session_id, verified_score,
    )
    return {
        "success": True,
        "target_met": True,
        "challenge_id": challenge_id,
        "score": verified_score,
        "target_score": challenge.target_score,
        "reward_practice_rating": challenge.reward_practice_rating,
        "reward_iq_rating": challenge.reward_iq_rating,
        "new_practice_rating": profile.practice_rating,
        "new_iq_rating": profile.iq_rating,
    }


async def complete_daily_challenge(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    session_id: str,
    challenge_id: str,
) -> dict[str, Any]:
    """Complete a challenge session and grant the reward when the target is met.

    A missed target still commits the session as completed and returns
    ``success: false`` instead of raising.
    """
    try:
        session = await load_owned_session(db, user_id, session_id)
        if session.challenge_id != challenge_id:
            raise ValidationError("Session is not associated with this challenge")
        if session.is_completed:
            raise AlreadyCompleted("Game already completed")

        score = await aggregate_session_score(db, session_id, user_id)

        try:
            result = await complete_daily_challenge_internal(db, user_id, challenge_id, session_id, score)
        except TargetNotMet as exc:
            result = {
                "success": False,
                "target_met": False,
                "challenge_id": challenge_id,
                "score": exc.score,
                "target_score": exc.target_score,
                "error": exc.message,
            }

        await mark_session_completed(db, session_id, score)
    except Exception:
        await db.rollback()
        raise

    await db.commit()

    logger.info(
        "Daily challenge session %s completed by %s: score=%d target_met=%s",
        session_id, user_id, score, result["target_met"],
    )
    await publish_to_user(redis, user_id, CHALLENGE_COMPLETED, {"session_id": session_id, **result})
    return result
