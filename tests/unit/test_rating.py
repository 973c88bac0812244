"""Unit tests for the solo and match rating policies."""

from __future__ import annotations

import pytest

from mathmaxxer.games.rating import (
    RATING_TIERS,
    Difficulty,
    apply_delta,
    match_delta,
    parse_difficulty,
    score_percentage,
    solo_delta,
    tier_for,
)


class TestTierTable:
    def test_tiers_strictly_increase_with_difficulty(self):
        tiers = [RATING_TIERS[d] for d in Difficulty]
        bases = [t.base for t in tiers]
        losses = [abs(t.loss) for t in tiers]
        assert bases == sorted(bases) and len(set(bases)) == len(bases)
        assert losses == sorted(losses)

    def test_beginner_and_master_values(self):
        assert tier_for("beginner") == (15, -8)
        assert tier_for("master") == (30, -15)

    @pytest.mark.parametrize("value", ["legendary", "", None, "BEGINNERS"])
    def test_unknown_difficulty_falls_back_to_beginner(self, value):
        assert tier_for(value) == RATING_TIERS[Difficulty.BEGINNER]
        assert parse_difficulty(value) is Difficulty.BEGINNER

    def test_difficulty_parsing_is_case_insensitive(self):
        assert parse_difficulty(" Expert ") is Difficulty.EXPERT


class TestSoloDelta:
    def test_scenario_new_player_full_base(self):
        """Beginner, 4/5 correct, 3 games played -> full base of 15."""
        assert solo_delta("beginner", score_percentage(4, 5), 3) == 15

    def test_scenario_veteran_decay(self):
        """Same game after 35 games -> floor(15 * 0.67) = 10."""
        assert solo_delta("beginner", score_percentage(4, 5), 35) == 10

    def test_poor_performance_loses_tier_loss(self):
        assert solo_delta("advanced", 39.9, 0) == -12

    def test_average_performance_half_base(self):
        assert solo_delta("elementary", 40, 100) == 9
        assert solo_delta("master", 69.99, 0) == 15

    @pytest.mark.parametrize(
        ("games", "expected"),
        [(0, 21), (9, 21), (10, 16), (29, 16), (30, 14), (49, 14), (50, 11), (500, 11)],
    )
    def test_experience_decay_boundaries(self, games, expected):
        """Intermediate base 21: x1.0, x0.8, x0.67, x0.53 (floored)."""
        assert solo_delta("intermediate", 70, games) == expected

    def test_unknown_difficulty_uses_beginner(self):
        assert solo_delta("impossible", 100, 0) == 15


class TestMatchDelta:
    def test_master_winner_and_loser(self):
        assert match_delta("master", is_winner=True, is_draw=False) == 30
        assert match_delta("master", is_winner=False, is_draw=False) == -15

    def test_draw_is_zero(self):
        for difficulty in Difficulty:
            assert match_delta(difficulty, is_winner=False, is_draw=True) == 0

    def test_unknown_difficulty_uses_beginner(self):
        assert match_delta("???", is_winner=True, is_draw=False) == 15


class TestClamping:
    def test_rating_never_negative(self):
        assert apply_delta(5, -15) == 0
        assert apply_delta(0, -8) == 0

    def test_positive_delta(self):
        assert apply_delta(1000, 30) == 1030

    def test_all_deltas_clamp_from_zero(self):
        for difficulty in Difficulty:
            for pct in (0, 50, 100):
                assert apply_delta(0, solo_delta(difficulty, pct, 0)) >= 0
            assert apply_delta(0, match_delta(difficulty, False, False)) == 0


class TestScorePercentage:
    def test_regular(self):
        assert score_percentage(4, 5) == 80

    def test_empty_session_is_zero(self):
        assert score_percentage(0, 0) == 0
        assert score_percentage(3, -1) == 0
