"""Solo game sessions: question pool, answer logging and completion.

Completion is idempotent: the session flips ``is_completed`` through a single
conditional UPDATE, and the profile change commits in the same transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mathmaxxer.db.models import DailyChallenge, GameAnswer, GameSession, Profile, Question
from mathmaxxer.errors import AlreadyCompleted, NotFound, Unauthorized, ValidationError
from mathmaxxer.games.rating import Difficulty, apply_delta, score_percentage, solo_delta
from mathmaxxer.games.scoring import aggregate_session_score, is_valid_time_control, questions_for_time_control
from mathmaxxer.games.verifier import check_answer
from mathmaxxer.ws.publisher import GAME_COMPLETED, publish_to_user

logger = logging.getLogger(__name__)

MAX_QUESTIONS_PER_REQUEST = 50


def validate_game_options(difficulty: str, time_control: str) -> None:
    """Raise ValidationError for an unknown difficulty or malformed time control."""
    if difficulty not in {d.value for d in Difficulty}:
        raise ValidationError(f"Invalid difficulty: {difficulty}")
    if not is_valid_time_control(time_control):
        raise ValidationError(f"Invalid time control: {time_control}")


async def list_questions(db: AsyncSession, difficulty: str, limit: int = 10) -> list[Question]:
    """Random sample of questions for a difficulty."""
    if difficulty not in {d.value for d in Difficulty}:
        raise ValidationError(f"Invalid difficulty: {difficulty}")
    limit = max(1, min(limit, MAX_QUESTIONS_PER_REQUEST))
    result = await db.execute(
        select(Question).where(Question.difficulty == difficulty).order_by(func.random()).limit(limit)
    )
    return list(result.scalars().all())


async def start_session(
    db: AsyncSession,
    user_id: str,
    difficulty: str,
    time_control: str,
    challenge_id: str | None = None,
) -> GameSession:
    """Create a solo session. Daily challenge sessions take the challenge's settings."""
    if challenge_id is not None:
        challenge = await db.get(DailyChallenge, challenge_id)
        if challenge is None:
            raise NotFound("Challenge not found")
        difficulty = challenge.difficulty
        time_control = challenge.time_control

    validate_game_options(difficulty, time_control)

    session = GameSession(
        user_id=user_id,
        difficulty=difficulty,
        time_control=time_control,
        total_questions=questions_for_time_control(time_control),
        challenge_id=challenge_id,
    )
    db.add(session)
    await db.commit()
    await db.refresh(session)
    logger.info("Game session %s started by %s (%s, %s)", session.id, user_id, difficulty, time_control)
    return session


async def load_owned_session(db: AsyncSession, user_id: str, session_id: str) -> GameSession:
    session = await db.get(GameSession, session_id, populate_existing=True)
    if session is None:
        raise NotFound("Game session not found")
    if session.user_id != user_id:
        raise Unauthorized("Unauthorized: You can only complete your own games")
    return session


async def record_game_answer(
    db: AsyncSession,
    user_id: str,
    session_id: str,
    question_id: str,
    user_answer: str | None,
) -> bool:
    """Verify an answer and append it to the session's answer log.

    One record per question; no more records than ``total_questions``.
    """
    try:
        session = await load_owned_session(db, user_id, session_id)
        if session.is_completed:
            raise AlreadyCompleted("Game already completed")

        existing = await db.execute(
            select(GameAnswer.question_id).where(
                GameAnswer.game_session_id == session_id,
                GameAnswer.user_id == user_id,
            )
        )
        answered = set(existing.scalars().all())
        if question_id in answered:
            raise ValidationError("Question already answered")
        if len(answered) >= session.total_questions:
            raise ValidationError("All questions in this session have been answered")

        is_correct = await check_answer(
            db, user_id, question_id, user_answer, difficulty=session.difficulty,
        )
        db.add(GameAnswer(
            game_session_id=session_id,
            user_id=user_id,
            question_id=question_id,
            user_answer=user_answer.strip() if user_answer else "",
            is_correct=is_correct,
        ))
        try:
            await db.flush()
        except IntegrityError as e:
            raise ValidationError("Question already answered") from e
    except Exception:
        await db.rollback()
        raise

    await db.commit()
    return is_correct


async def mark_session_completed(db: AsyncSession, session_id: str, score: int) -> None:
    """Conditionally flip ``is_completed``. Raises AlreadyCompleted if another request won."""
    result = await db.execute(
        update(GameSession)
        .where(GameSession.id == session_id, GameSession.is_completed.is_(False))
        .values(score=score, is_completed=True, completed_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise AlreadyCompleted("Game already completed")


async def lock_profile(db: AsyncSession, user_id: str) -> Profile:
    """Load a profile row FOR UPDATE, refreshing any identity-mapped copy."""
    result = await db.execute(
        select(Profile)
        .where(Profile.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    profile = result.scalar_one_or_none()
    if profile is None:
        raise NotFound("Profile not found")
    return profile


async def complete_solo_game(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    session_id: str,
) -> dict[str, Any]:
    """Complete a solo session and apply the practice rating change.

    Returns {success, score, points_earned, new_practice_rating, total_games}.
    """
    try:
        session = await load_owned_session(db, user_id, session_id)
        if session.is_completed:
            raise AlreadyCompleted("Game already completed")
        if session.challenge_id is not None:
            raise ValidationError("Daily challenge sessions must be completed through the challenge")

        score = await aggregate_session_score(db, session_id, user_id)
        percentage = score_percentage(score, session.total_questions)

        profile = await lock_profile(db, user_id)
        points_earned = solo_delta(session.difficulty, percentage, profile.total_games)

        await mark_session_completed(db, session_id, score)

        profile.practice_rating = apply_delta(profile.practice_rating, points_earned)
        profile.total_games += 1
        profile.updated_at = datetime.now(timezone.utc)
        await db.flush()
        new_rating = profile.practice_rating
        total_games = profile.total_games
    except Exception:
        await db.rollback()
        raise

    await db.commit()

    logger.info(
        "Solo game %s completed by %s: score=%d/%d points=%d rating=%d",
        session_id, user_id, score, session.total_questions, points_earned, new_rating,
    )

    result = {
        "success": True,
        "score": score,
        "points_earned": points_earned,
        "new_practice_rating": new_rating,
        "total_games": total_games,
    }
    await publish_to_user(redis, user_id, GAME_COMPLETED, {"session_id": session_id, **result})
    return result
