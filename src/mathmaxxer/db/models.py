"""ORM models for profiles, questions, game sessions, matches and the matchmaking queue.

Primary keys are string UUIDs so rows round-trip identically through
PostgreSQL (production) and SQLite (tests).
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mathmaxxer.config import get_settings
from mathmaxxer.db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _default_iq_rating() -> int:
    return get_settings().default_iq_rating


def _default_practice_rating() -> int:
    return get_settings().default_practice_rating


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class Profile(Base):
    """Player profile. ``id`` equals the auth provider's user id (JWT ``sub``)."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    iq_rating: Mapped[int] = mapped_column(
        Integer, nullable=False, default=_default_iq_rating, server_default="1000"
    )
    practice_rating: Mapped[int] = mapped_column(
        Integer, nullable=False, default=_default_practice_rating, server_default="1000"
    )
    last_queued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_games: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


# ---------------------------------------------------------------------------
# Questions & answer verification
# ---------------------------------------------------------------------------


class Question(Base):
    """Arithmetic question. ``answer`` is never exposed to clients."""

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(String(100), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class AnswerVerificationAttempt(Base):
    """One row per verification call, feeds the verifier's rolling rate limit."""

    __tablename__ = "answer_verification_attempts"
    __table_args__ = (
        Index("ix_answer_verification_attempts_user_time", "user_id", "attempted_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    question_id: Mapped[str] = mapped_column(String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    attempted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


# ---------------------------------------------------------------------------
# Daily challenges
# ---------------------------------------------------------------------------


class DailyChallenge(Base):
    __tablename__ = "daily_challenges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    challenge_date: Mapped[date] = mapped_column(Date, unique=True, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)
    time_control: Mapped[str] = mapped_column(String(16), nullable=False)
    target_score: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_practice_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    reward_iq_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class UserChallengeCompletion(Base):
    """At most one reward claim per (user, challenge)."""

    __tablename__ = "user_challenge_completions"
    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="uq_user_challenge_completions_user_challenge"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    challenge_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("daily_challenges.id", ondelete="CASCADE"), nullable=False
    )
    score_achieved: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


# ---------------------------------------------------------------------------
# Solo play
# ---------------------------------------------------------------------------


class GameSession(Base):
    """Solo practice (or daily challenge) session."""

    __tablename__ = "game_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)
    time_control: Mapped[str] = mapped_column(String(16), nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    challenge_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("daily_challenges.id", ondelete="SET NULL"), nullable=True
    )

    challenge: Mapped[DailyChallenge | None] = relationship("DailyChallenge")


class GameAnswer(Base):
    """Append-only answer log for a solo session. Sole source of truth for scoring."""

    __tablename__ = "game_answers"
    __table_args__ = (
        UniqueConstraint(
            "game_session_id", "user_id", "question_id", name="uq_game_answers_session_user_question"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    game_session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("game_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    question_id: Mapped[str] = mapped_column(String(36), ForeignKey("questions.id"), nullable=False)
    user_answer: Mapped[str] = mapped_column(String(100), nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


# ---------------------------------------------------------------------------
# Competitive play
# ---------------------------------------------------------------------------


class Match(Base):
    """Head-to-head match. Status: waiting -> in_progress -> completed.

    ``source`` is "matchmaking" for queue pairings, "direct" for create/join.
    """

    __tablename__ = "matches"
    __table_args__ = (
        Index("ix_matches_source_status", "source", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    player1_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    player2_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=True
    )
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)
    time_control: Mapped[str] = mapped_column(String(16), nullable=False)
    player1_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    player2_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="waiting", server_default="waiting")
    source: Mapped[str] = mapped_column(String(16), nullable=False, default="direct", server_default="direct")
    winner_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class MatchAnswer(Base):
    """Append-only answer log for a match."""

    __tablename__ = "match_answers"
    __table_args__ = (
        UniqueConstraint("match_id", "user_id", "question_id", name="uq_match_answers_match_user_question"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    match_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    question_id: Mapped[str] = mapped_column(String(36), ForeignKey("questions.id"), nullable=False)
    user_answer: Mapped[str] = mapped_column(String(100), nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class MatchmakingQueueEntry(Base):
    """A player waiting for an opponent. One row per user at most."""

    __tablename__ = "matchmaking_queue"
    __table_args__ = (
        Index("ix_matchmaking_queue_bucket", "difficulty", "time_control", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)
    time_control: Mapped[str] = mapped_column(String(16), nullable=False)
    iq_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
