"""Pydantic request/response models for game endpoints.

Completion endpoints speak camelCase (``sessionId``, ``challengeId``) to match
the web client; remote procedure bodies use snake_case.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Questions & verification ──


class QuestionResponse(BaseModel):
    """Public view of a question (the answer is never included)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    question: str
    difficulty: str


class VerifyAnswerRequest(BaseModel):
    question_id: str
    user_answer: str | None = None


class AnswerSubmitRequest(BaseModel):
    question_id: str
    user_answer: str | None = None


class AnswerSubmitResponse(BaseModel):
    is_correct: bool


# ── Sessions ──


class StartSessionRequest(BaseModel):
    difficulty: str = "beginner"
    time_control: str = "3+2"
    challenge_id: str | None = None


class GameSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    difficulty: str
    time_control: str
    total_questions: int
    score: int
    is_completed: bool
    started_at: datetime
    completed_at: datetime | None = None
    challenge_id: str | None = None


# ── Solo completion ──


class CompleteSoloGameRequest(CamelModel):
    session_id: str | None = None


class CompleteSoloGameResponse(BaseModel):
    success: bool = True
    score: int
    points_earned: int
    new_practice_rating: int
    total_games: int


# ── Daily challenge ──


class CompleteDailyChallengeRequest(CamelModel):
    session_id: str | None = None
    challenge_id: str | None = None


class CompleteDailyChallengeResponse(BaseModel):
    success: bool
    target_met: bool
    challenge_id: str
    score: int
    target_score: int
    reward_practice_rating: int = 0
    reward_iq_rating: int = 0
    new_practice_rating: int | None = None
    new_iq_rating: int | None = None
    error: str | None = None


class DailyChallengeResponse(BaseModel):
    id: str
    challenge_date: date
    difficulty: str
    time_control: str
    target_score: int
    reward_practice_rating: int
    reward_iq_rating: int
    completed: bool = False
    score_achieved: int | None = Field(default=None, description="Caller's score when completed")
