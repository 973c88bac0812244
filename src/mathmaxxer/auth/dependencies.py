"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from mathmaxxer.auth.jwt import verify_token
from mathmaxxer.database import get_session
from mathmaxxer.db.models import Profile
from mathmaxxer.errors import Unauthorized

_bearer = HTTPBearer(auto_error=False)


async def get_current_profile(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> Profile:
    """
    Extract and verify the bearer JWT, return the caller's Profile.

    Raises Unauthorized (401) on a missing/invalid token or unknown profile.
    """
    if credentials is None:
        raise Unauthorized("Authentication required")
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise Unauthorized(str(e)) from e

    profile = await db.get(Profile, str(payload["sub"]))
    if profile is None:
        raise Unauthorized("Profile not found")
    return profile
