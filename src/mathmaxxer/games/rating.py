"""Rating engine: pure functions, no I/O.

Two independent policies:
    solo_delta  -> practice_rating, percentage based with experience decay
    match_delta -> iq_rating, fixed winner/loser points per difficulty tier

Unknown difficulties fall back to the beginner tier instead of raising so a
bad row never blocks a game from completing.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import NamedTuple


class Difficulty(str, Enum):
    """Six ordered difficulty tiers, easiest first."""

    BEGINNER = "beginner"
    ELEMENTARY = "elementary"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"
    MASTER = "master"


class RatingTier(NamedTuple):
    base: int
    loss: int


RATING_TIERS: dict[Difficulty, RatingTier] = {
    Difficulty.BEGINNER: RatingTier(15, -8),
    Difficulty.ELEMENTARY: RatingTier(18, -9),
    Difficulty.INTERMEDIATE: RatingTier(21, -10),
    Difficulty.ADVANCED: RatingTier(24, -12),
    Difficulty.EXPERT: RatingTier(27, -13),
    Difficulty.MASTER: RatingTier(30, -15),
}

# Performance thresholds (percent)
POOR_PERFORMANCE = 40
GOOD_PERFORMANCE = 70

# (games played below, multiplier) applied to the base on good performance
EXPERIENCE_DECAY: tuple[tuple[int, float], ...] = (
    (10, 1.0),
    (30, 0.8),
    (50, 0.67),
)
VETERAN_MULTIPLIER = 0.53


def parse_difficulty(value: str | None) -> Difficulty:
    """Parse a difficulty string, falling back to beginner."""
    if value is None:
        return Difficulty.BEGINNER
    try:
        return Difficulty(value.strip().lower())
    except ValueError:
        return Difficulty.BEGINNER


def tier_for(difficulty: str | Difficulty | None) -> RatingTier:
    """Rating tier for a difficulty. Never raises."""
    if isinstance(difficulty, Difficulty):
        return RATING_TIERS[difficulty]
    return RATING_TIERS[parse_difficulty(difficulty)]


def score_percentage(score: int, total_questions: int) -> float:
    """Score as a percentage of total questions, 0 for empty sessions."""
    if total_questions <= 0:
        return 0.0
    return score / total_questions * 100


def solo_delta(difficulty: str | Difficulty | None, percentage: float, total_games_played: int) -> int:
    """Practice rating change for a completed solo session.

    < 40%  -> tier loss
    < 70%  -> floor(base * 0.5)
    >= 70% -> base decayed by games already played:
              <10 x1.0, <30 x0.8, <50 x0.67, else x0.53
    """
    tier = tier_for(difficulty)
    if percentage < POOR_PERFORMANCE:
        return tier.loss
    if percentage < GOOD_PERFORMANCE:
        return math.floor(tier.base * 0.5)

    for games_below, multiplier in EXPERIENCE_DECAY:
        if total_games_played < games_below:
            return math.floor(tier.base * multiplier)
    return math.floor(tier.base * VETERAN_MULTIPLIER)


def match_delta(difficulty: str | Difficulty | None, is_winner: bool, is_draw: bool) -> int:
    """Competitive rating change for one player of a completed match."""
    if is_draw:
        return 0
    tier = tier_for(difficulty)
    return tier.base if is_winner else tier.loss


def apply_delta(rating: int, delta: int) -> int:
    """Apply a delta, clamping the result at 0."""
    return max(0, rating + delta)
