"""HTTP middleware stack for the game API.

Outermost first: CORS, request id, per-IP rate limit, then the routers with
the JSON error handlers. Starlette wraps in reverse-add order, so CORS is
added last and its headers land on 429 responses too.
"""

from fastapi import FastAPI

from mathmaxxer.config import Settings
from mathmaxxer.middleware.cors import setup_cors
from mathmaxxer.middleware.error_handler import setup_error_handlers
from mathmaxxer.middleware.logging import setup_logging
from mathmaxxer.middleware.rate_limit import RateLimitMiddleware
from mathmaxxer.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
