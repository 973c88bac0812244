"""Shared test fixtures.

Each test gets its own SQLite database file (aiosqlite) with the schema created
from the ORM metadata. Redis is not initialised, so rate limiting middleware
passes through, pub/sub publishing is a no-op and matchmaking uses
process-local bucket locks.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import date
from pathlib import Path

os.environ.setdefault("MM_JWT_SECRET", "test-secret-for-hs256-signing-0123456789abcdef")
os.environ.setdefault("MM_JWT_ALGORITHM", "HS256")
os.environ.setdefault("MM_LOG_FORMAT", "console")

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from mathmaxxer.auth.jwt import create_access_token, reset_keys  # noqa: E402
from mathmaxxer.config import get_settings  # noqa: E402
from mathmaxxer.database import close_db, get_engine, get_session_factory, init_db  # noqa: E402
from mathmaxxer.db.base import Base  # noqa: E402
from mathmaxxer.db.models import (  # noqa: E402
    DailyChallenge,
    GameAnswer,
    GameSession,
    Match,
    MatchAnswer,
    Profile,
    Question,
)
from mathmaxxer.main import create_app  # noqa: E402

get_settings.cache_clear()
reset_keys()


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[None, None]:
    """Fresh SQLite database with all tables."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for arranging data and asserting on it."""
    async with get_session_factory()() as session:
        yield session


@pytest_asyncio.fixture
async def client(database: None) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client bound to the app."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ── Data helpers ──


def auth_headers(profile: Profile | str) -> dict[str, str]:
    profile_id = profile if isinstance(profile, str) else profile.id
    return {"Authorization": f"Bearer {create_access_token(profile_id)}"}


async def make_profile(
    db: AsyncSession,
    username: str,
    *,
    iq_rating: int = 1000,
    practice_rating: int = 1000,
    total_games: int = 0,
    wins: int = 0,
    losses: int = 0,
) -> Profile:
    profile = Profile(
        username=username,
        iq_rating=iq_rating,
        practice_rating=practice_rating,
        total_games=total_games,
        wins=wins,
        losses=losses,
    )
    db.add(profile)
    await db.commit()
    return profile


async def make_questions(db: AsyncSession, count: int, difficulty: str = "beginner") -> list[Question]:
    """Questions "i + i" with answer str(2 * i)."""
    questions = [
        Question(question=f"{i} + {i}", answer=str(2 * i), difficulty=difficulty)
        for i in range(1, count + 1)
    ]
    db.add_all(questions)
    await db.commit()
    return questions


async def make_session(
    db: AsyncSession,
    user: Profile,
    *,
    difficulty: str = "beginner",
    total_questions: int = 5,
    time_control: str = "5+5",
    challenge: DailyChallenge | None = None,
) -> GameSession:
    session = GameSession(
        user_id=user.id,
        difficulty=difficulty,
        time_control=time_control,
        total_questions=total_questions,
        challenge_id=challenge.id if challenge else None,
    )
    db.add(session)
    await db.commit()
    return session


async def log_game_answers(
    db: AsyncSession, session: GameSession, questions: list[Question], correct: int
) -> None:
    """Log one answer per question, the first ``correct`` of them correct."""
    for i, question in enumerate(questions):
        db.add(GameAnswer(
            game_session_id=session.id,
            user_id=session.user_id,
            question_id=question.id,
            user_answer=question.answer if i < correct else "wrong",
            is_correct=i < correct,
        ))
    await db.commit()


async def make_match(
    db: AsyncSession,
    player1: Profile,
    player2: Profile | None,
    *,
    difficulty: str = "beginner",
    time_control: str = "10+10",
    status: str = "in_progress",
) -> Match:
    match = Match(
        player1_id=player1.id,
        player2_id=player2.id if player2 else None,
        difficulty=difficulty,
        time_control=time_control,
        status=status if player2 else "waiting",
    )
    db.add(match)
    await db.commit()
    return match


async def log_match_answers(
    db: AsyncSession, match: Match, player: Profile, questions: list[Question], correct: int
) -> None:
    for i, question in enumerate(questions):
        db.add(MatchAnswer(
            match_id=match.id,
            user_id=player.id,
            question_id=question.id,
            user_answer=question.answer if i < correct else "wrong",
            is_correct=i < correct,
        ))
    await db.commit()


async def make_challenge(
    db: AsyncSession,
    *,
    challenge_date: date,
    target_score: int = 7,
    reward_practice_rating: int = 50,
    reward_iq_rating: int = 20,
) -> DailyChallenge:
    challenge = DailyChallenge(
        challenge_date=challenge_date,
        difficulty="intermediate",
        time_control="10+10",
        target_score=target_score,
        reward_practice_rating=reward_practice_rating,
        reward_iq_rating=reward_iq_rating,
    )
    db.add(challenge)
    await db.commit()
    return challenge
