"""Pydantic models for match and matchmaking endpoints.

Match completion speaks camelCase to match the web client.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from mathmaxxer.games.schemas import CamelModel


# ── Matches ──


class CreateMatchRequest(BaseModel):
    difficulty: str = "beginner"
    time_control: str = "3+2"


class MatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    player1_id: str
    player2_id: str | None = None
    difficulty: str
    time_control: str
    player1_score: int
    player2_score: int
    status: str
    winner_id: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None


class CompleteMatchRequest(CamelModel):
    match_id: str | None = None


class CompleteMatchResponse(CamelModel):
    success: bool = True
    winner_id: str | None
    player1_rating_change: int
    player2_rating_change: int
    player1_score: int
    player2_score: int


# ── Matchmaking ──


class JoinQueueRequest(BaseModel):
    difficulty: str = "beginner"
    time_control: str = "3+2"


class QueueStatusResponse(BaseModel):
    in_queue: bool
    queue_count: int
    match_id: str | None = None


class LeaveQueueResponse(BaseModel):
    removed: bool
    in_queue: bool = False
    queue_count: int


class FindMatchRequest(BaseModel):
    user_id: str
    difficulty: str
    time_control: str
    iq_rating: int | None = None
