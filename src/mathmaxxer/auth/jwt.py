"""
JWT verification for bearer credentials.

Tokens are normally minted by the hosted auth provider (HS256 with a shared
secret, ``aud="authenticated"``). Asymmetric algorithms read PEM keys from disk.
The ``sub`` claim is the profile id.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import jwt

from mathmaxxer.config import get_settings

_signing_key: str | None = None
_verify_key: str | None = None


def _load_keys() -> tuple[str, str]:
    """Return (signing key, verification key), cached after first call."""
    global _signing_key, _verify_key  # noqa: PLW0603
    if _signing_key is None or _verify_key is None:
        settings = get_settings()
        if settings.jwt_algorithm.startswith("HS"):
            if not settings.jwt_secret:
                msg = "MM_JWT_SECRET must be set for HMAC algorithms"
                raise RuntimeError(msg)
            _signing_key = _verify_key = settings.jwt_secret
        else:
            _signing_key = Path(settings.jwt_private_key_path).read_text()
            _verify_key = Path(settings.jwt_public_key_path).read_text()
    return _signing_key, _verify_key


def reset_keys() -> None:
    """Reset cached keys (useful for testing)."""
    global _signing_key, _verify_key  # noqa: PLW0603
    _signing_key = None
    _verify_key = None


def create_access_token(profile_id: str, *, expires_minutes: int | None = None) -> str:
    """
    Create an access token for a profile.

    Production tokens come from the auth provider; this is used by dev tooling
    and tests.
    """
    signing_key, _ = _load_keys()
    settings = get_settings()
    now = datetime.now(timezone.utc)
    minutes = settings.jwt_access_token_expire_minutes if expires_minutes is None else expires_minutes
    payload: dict[str, Any] = {
        "sub": str(profile_id),
        "iat": now,
        "exp": now + timedelta(minutes=minutes),
        "role": "authenticated",
    }
    if settings.jwt_issuer:
        payload["iss"] = settings.jwt_issuer
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience
    return jwt.encode(payload, signing_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode a JWT.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or has no subject.
    """
    _, verify_key = _load_keys()
    settings = get_settings()
    options: dict[str, Any] = {"require": ["exp", "sub"]}
    if not settings.jwt_audience:
        options["verify_aud"] = False
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            verify_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    return payload
