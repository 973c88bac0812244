"""Score aggregation over the answer logs and time control parsing.

Scores are always recomputed from ``game_answers`` / ``match_answers``;
client-supplied score fields are never read.
"""

from __future__ import annotations

import re

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mathmaxxer.db.models import GameAnswer, MatchAnswer

TIME_CONTROLS = ("3+2", "5+5", "10+10", "15+15", "30+30")

# Named controls used by daily challenges
TIME_CONTROL_ALIASES = {"blitz": 2, "rapid": 5, "classical": 10}

_TIME_CONTROL_RE = re.compile(r"^\s*(\d+)\s*\+\s*(\d+)\s*$")


def is_valid_time_control(value: str) -> bool:
    try:
        questions_for_time_control(value)
    except ValueError:
        return False
    return True


def questions_for_time_control(value: str) -> int:
    """Number of questions in a session for ``"<minutes>+<questions>"`` or a named alias.

    Raises ValueError for anything else.
    """
    alias = TIME_CONTROL_ALIASES.get(value.strip().lower())
    if alias is not None:
        return alias
    m = _TIME_CONTROL_RE.match(value)
    if m is None or int(m.group(2)) <= 0:
        msg = f"Invalid time control: {value!r}"
        raise ValueError(msg)
    return int(m.group(2))


async def aggregate_session_score(db: AsyncSession, session_id: str, user_id: str) -> int:
    """Count correct answers logged by ``user_id`` for a solo session."""
    result = await db.execute(
        select(func.count(GameAnswer.id)).where(
            GameAnswer.game_session_id == session_id,
            GameAnswer.user_id == user_id,
            GameAnswer.is_correct.is_(True),
        )
    )
    return int(result.scalar_one())


async def aggregate_match_score(db: AsyncSession, match_id: str, user_id: str) -> int:
    """Count correct answers logged by ``user_id`` for a match."""
    result = await db.execute(
        select(func.count(MatchAnswer.id)).where(
            MatchAnswer.match_id == match_id,
            MatchAnswer.user_id == user_id,
            MatchAnswer.is_correct.is_(True),
        )
    )
    return int(result.scalar_one())


async def aggregate_match_scores(
    db: AsyncSession, match_id: str, player1_id: str, player2_id: str
) -> tuple[int, int]:
    """(player1 score, player2 score) for a match."""
    return (
        await aggregate_match_score(db, match_id, player1_id),
        await aggregate_match_score(db, match_id, player2_id),
    )
