"""Domain exceptions.

Services raise these; the global handler in ``mathmaxxer.middleware.error_handler``
renders them as ``{"error": message}`` with the class status code.
"""

from __future__ import annotations


class GameError(Exception):
    """Base class for every expected failure of a game operation."""

    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(GameError):
    """Missing/invalid credential, or caller is not a participant."""

    status_code = 401
    default_message = "Unauthorized"


class NotFound(GameError):
    status_code = 404
    default_message = "Not found"


class AlreadyCompleted(GameError):
    """Idempotency guard tripped: the entity was already completed."""

    status_code = 409
    default_message = "Already completed"


class ValidationError(GameError):
    status_code = 400
    default_message = "Invalid request"


class RateLimited(GameError):
    status_code = 429
    default_message = "Rate limit exceeded"


class TargetNotMet(GameError):
    """Daily challenge score below target. The game is still recorded."""

    status_code = 422

    def __init__(self, score: int, target_score: int) -> None:
        self.score = score
        self.target_score = target_score
        super().__init__(f"Score {score} did not meet target {target_score}")
