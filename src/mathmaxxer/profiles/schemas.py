"""Pydantic response models for profile endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    iq_rating: int
    practice_rating: int
    wins: int
    losses: int
    total_games: int
    created_at: datetime
    updated_at: datetime
