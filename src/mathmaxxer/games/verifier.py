"""Server-side answer verification with a rolling per-user rate limit.

Every accepted call leaves a row in ``answer_verification_attempts``; the
rate limit is a count of those rows over the trailing window.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mathmaxxer.config import Settings, get_settings
from mathmaxxer.db.models import AnswerVerificationAttempt, Question
from mathmaxxer.errors import NotFound, RateLimited, ValidationError

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_answer(value: str) -> str:
    """Lowercase and collapse internal whitespace."""
    return _WHITESPACE_RE.sub(" ", value.strip()).lower()


def _as_number(value: str) -> Decimal | None:
    try:
        number = Decimal(value.replace(" ", ""))
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def answers_match(expected: str, candidate: str) -> bool:
    """True when the candidate equals the stored answer.

    Numeric answers compare by value ("4.0" == "4", "-3" == " -3 "),
    everything else compares case-insensitively.
    """
    expected_norm = normalize_answer(expected)
    candidate_norm = normalize_answer(candidate)
    if expected_norm == candidate_norm:
        return True
    expected_num = _as_number(expected_norm)
    candidate_num = _as_number(candidate_norm)
    return expected_num is not None and candidate_num is not None and expected_num == candidate_num


def clean_candidate(candidate: str | None, settings: Settings | None = None) -> str:
    """Strip the candidate answer and enforce length bounds."""
    settings = settings or get_settings()
    cleaned = (candidate or "").strip()
    if not cleaned:
        raise ValidationError("Answer is required")
    if len(cleaned) > settings.answer_max_length:
        raise ValidationError(f"Answer must be at most {settings.answer_max_length} characters")
    return cleaned


async def count_recent_attempts(db: AsyncSession, user_id: str, window_seconds: int) -> int:
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=window_seconds)
    result = await db.execute(
        select(func.count(AnswerVerificationAttempt.id)).where(
            AnswerVerificationAttempt.user_id == user_id,
            AnswerVerificationAttempt.attempted_at >= cutoff,
        )
    )
    return int(result.scalar_one())


async def check_answer(
    db: AsyncSession,
    user_id: str,
    question_id: str,
    candidate: str | None,
    settings: Settings | None = None,
    *,
    difficulty: str | None = None,
) -> bool:
    """Verify a candidate answer inside the caller's transaction (flush, no commit).

    When ``difficulty`` is given the question must belong to that tier.

    Raises:
        ValidationError: empty or over-long answer, or a question from another tier.
        RateLimited: too many attempts in the trailing window.
        NotFound: unknown question.
    """
    settings = settings or get_settings()
    cleaned = clean_candidate(candidate, settings)

    attempts = await count_recent_attempts(db, user_id, settings.verify_rate_limit_window_seconds)
    if attempts >= settings.verify_rate_limit_attempts:
        logger.warning("Verification rate limit hit for %s (%d attempts)", user_id, attempts)
        raise RateLimited("Rate limit exceeded")

    question = await db.get(Question, question_id)
    if question is None:
        raise NotFound("Question not found")
    if difficulty is not None and question.difficulty != difficulty:
        raise ValidationError("Question difficulty does not match this game")

    db.add(AnswerVerificationAttempt(user_id=user_id, question_id=question_id))
    await db.flush()

    return answers_match(question.answer, cleaned)


async def verify_answer(
    db: AsyncSession,
    user_id: str,
    question_id: str,
    candidate: str | None,
) -> bool:
    """Verify an answer and persist the attempt. Never touches scores."""
    try:
        is_correct = await check_answer(db, user_id, question_id, candidate)
    except Exception:
        await db.rollback()
        raise
    await db.commit()
    return is_correct
