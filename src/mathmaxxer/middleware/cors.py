"""CORS for the game front-end.

Browsers may cache a preflight for ten minutes. The rate limit headers,
including Retry-After on 429s, are exposed so the client can back off.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mathmaxxer.config import Settings

PREFLIGHT_MAX_AGE_SECONDS = 600


def setup_cors(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
        expose_headers=["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit", "Retry-After"],
        max_age=PREFLIGHT_MAX_AGE_SECONDS,
    )
