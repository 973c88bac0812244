"""Profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from mathmaxxer.auth.dependencies import get_current_profile
from mathmaxxer.db.models import Profile
from mathmaxxer.profiles.schemas import ProfileResponse

router = APIRouter(prefix="/api/v1/profiles", tags=["Profiles"])


@router.get("/me", response_model=ProfileResponse)
async def get_me(profile: Profile = Depends(get_current_profile)) -> ProfileResponse:
    """Current ratings and game counters for the caller."""
    return ProfileResponse.model_validate(profile)
