"""Head-to-head matches: lifecycle, answer logging and completion.

Status flow: waiting -> in_progress -> completed. Completion recomputes both
scores from ``match_answers`` and updates the match and both profiles in one
transaction; the ``status != 'completed'`` conditional UPDATE makes a retried
or concurrent completion fail with AlreadyCompleted instead of paying twice.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mathmaxxer.db.models import Match, MatchAnswer, Profile
from mathmaxxer.errors import AlreadyCompleted, NotFound, Unauthorized, ValidationError
from mathmaxxer.games.rating import apply_delta, match_delta
from mathmaxxer.games.scoring import aggregate_match_scores, questions_for_time_control
from mathmaxxer.games.session_service import validate_game_options
from mathmaxxer.games.verifier import check_answer
from mathmaxxer.ws.publisher import (
    MATCH_COMPLETED,
    MATCH_FOUND,
    MATCH_UPDATE,
    publish_broadcast,
    publish_to_user,
)

logger = logging.getLogger(__name__)

STATUS_WAITING = "waiting"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"

SOURCE_DIRECT = "direct"
SOURCE_MATCHMAKING = "matchmaking"


def match_summary(match: Match) -> dict[str, Any]:
    """Event payload for a match."""
    return {
        "match_id": match.id,
        "player1_id": match.player1_id,
        "player2_id": match.player2_id,
        "difficulty": match.difficulty,
        "time_control": match.time_control,
        "status": match.status,
    }


async def create_match(db: AsyncSession, user_id: str, difficulty: str, time_control: str) -> Match:
    """Open a waiting match with the caller as player 1."""
    validate_game_options(difficulty, time_control)
    match = Match(
        player1_id=user_id,
        difficulty=difficulty,
        time_control=time_control,
        status=STATUS_WAITING,
        source=SOURCE_DIRECT,
    )
    db.add(match)
    await db.commit()
    await db.refresh(match)
    logger.info("Match %s created by %s", match.id, user_id)
    return match


async def _load_match(db: AsyncSession, match_id: str) -> Match:
    match = await db.get(Match, match_id, populate_existing=True)
    if match is None:
        raise NotFound("Match not found")
    return match


def _require_participant(match: Match, user_id: str) -> None:
    if user_id not in (match.player1_id, match.player2_id):
        raise Unauthorized("Unauthorized: You are not part of this match")


async def get_match(db: AsyncSession, user_id: str, match_id: str) -> Match:
    """Fetch a match visible to the caller (participants only)."""
    match = await _load_match(db, match_id)
    _require_participant(match, user_id)
    return match


async def join_match(db: AsyncSession, redis: object | None, user_id: str, match_id: str) -> Match:
    """Take the open seat of a waiting match."""
    try:
        match = await _load_match(db, match_id)
        if match.player1_id == user_id:
            raise ValidationError("You cannot join your own match")

        result = await db.execute(
            update(Match)
            .where(
                Match.id == match_id,
                Match.status == STATUS_WAITING,
                Match.player2_id.is_(None),
            )
            .values(player2_id=user_id, status=STATUS_IN_PROGRESS, started_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ValidationError("Match is no longer open")
    except Exception:
        await db.rollback()
        raise

    await db.commit()
    match = await _load_match(db, match_id)
    logger.info("Match %s joined by %s", match_id, user_id)

    summary = match_summary(match)
    for player_id in (match.player1_id, user_id):
        await publish_to_user(redis, player_id, MATCH_FOUND, summary)
    await publish_broadcast(redis, MATCH_UPDATE, summary)
    return match


async def record_match_answer(
    db: AsyncSession,
    user_id: str,
    match_id: str,
    question_id: str,
    user_answer: str | None,
) -> bool:
    """Verify an answer and append it to the match's answer log.

    Each player logs at most one answer per question and no more answers
    than the time control allots.
    """
    try:
        match = await _load_match(db, match_id)
        _require_participant(match, user_id)
        if match.status == STATUS_COMPLETED:
            raise AlreadyCompleted("Match already completed")
        if match.status != STATUS_IN_PROGRESS:
            raise ValidationError("Match has not started")

        existing = await db.execute(
            select(MatchAnswer.question_id).where(
                MatchAnswer.match_id == match_id,
                MatchAnswer.user_id == user_id,
            )
        )
        answered = set(existing.scalars().all())
        if question_id in answered:
            raise ValidationError("Question already answered")
        if len(answered) >= questions_for_time_control(match.time_control):
            raise ValidationError("All questions in this match have been answered")

        is_correct = await check_answer(
            db, user_id, question_id, user_answer, difficulty=match.difficulty,
        )
        db.add(MatchAnswer(
            match_id=match_id,
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


async def _lock_profiles(db: AsyncSession, *user_ids: str) -> dict[str, Profile]:
    """Lock profile rows in id order so concurrent completions cannot deadlock."""
    result = await db.execute(
        select(Profile)
        .where(Profile.id.in_(user_ids))
        .order_by(Profile.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    profiles = {p.id: p for p in result.scalars().all()}
    for user_id in user_ids:
        if user_id not in profiles:
            raise NotFound("Profile not found")
    return profiles


async def complete_match(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    match_id: str,
) -> dict[str, Any]:
    """Finalize a match: verified scores, winner, rating changes and counters.

    Returns {success, winner_id, player1_rating_change, player2_rating_change,
    player1_score, player2_score}.
    """
    try:
        match = await _load_match(db, match_id)
        _require_participant(match, user_id)
        if match.status == STATUS_COMPLETED:
            raise AlreadyCompleted("Match already completed")
        if match.player2_id is None:
            raise ValidationError("Match has no opponent yet")

        player1_id, player2_id = match.player1_id, match.player2_id
        player1_score, player2_score = await aggregate_match_scores(db, match_id, player1_id, player2_id)

        is_draw = player1_score == player2_score
        winner_id: str | None = None
        if player1_score > player2_score:
            winner_id = player1_id
        elif player2_score > player1_score:
            winner_id = player2_id

        player1_change = match_delta(match.difficulty, winner_id == player1_id, is_draw)
        player2_change = match_delta(match.difficulty, winner_id == player2_id, is_draw)

        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(Match)
            .where(Match.id == match_id, Match.status != STATUS_COMPLETED)
            .values(
                player1_score=player1_score,
                player2_score=player2_score,
                winner_id=winner_id,
                status=STATUS_COMPLETED,
                completed_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise AlreadyCompleted("Match already completed")

        profiles = await _lock_profiles(db, player1_id, player2_id)
        for player_id, change in ((player1_id, player1_change), (player2_id, player2_change)):
            profile = profiles[player_id]
            profile.iq_rating = apply_delta(profile.iq_rating, change)
            profile.total_games += 1
            if not is_draw:
                if player_id == winner_id:
                    profile.wins += 1
                else:
                    profile.losses += 1
            profile.updated_at = now
        await db.flush()
    except Exception:
        await db.rollback()
        raise

    await db.commit()

    logger.info(
        "Match %s completed: %d-%d winner=%s changes=(%+d, %+d)",
        match_id, player1_score, player2_score, winner_id, player1_change, player2_change,
    )

    outcome = {
        "success": True,
        "winner_id": winner_id,
        "player1_rating_change": player1_change,
        "player2_rating_change": player2_change,
        "player1_score": player1_score,
        "player2_score": player2_score,
    }
    event = {"match_id": match_id, "player1_id": player1_id, "player2_id": player2_id, **outcome}
    for player_id in (player1_id, player2_id):
        await publish_to_user(redis, player_id, MATCH_COMPLETED, event)
    await publish_broadcast(redis, MATCH_UPDATE, {**event, "status": STATUS_COMPLETED})
    return outcome
