"""
Unit tests for the progression formulas.

Covers the linear leveling curve, its helpers and the match XP formula.
"""

import pytest

from zdefense.modules.shared.formulas import (
    DEFAULT_BASE_XP_PER_LEVEL,
    compute_match_xp,
    crossed_level_boundary,
    level_from_xp,
    xp_for_level,
    xp_to_next_level,
)


@pytest.mark.unit
class TestLevelFromXP:
    """Test the XP → level mapping."""

    def test_zero_xp_is_level_one(self):
        """A fresh player is level 1."""
        assert level_from_xp(0) == 1

    def test_level_boundaries(self):
        """Each full base of XP adds one level."""
        assert level_from_xp(999) == 1
        assert level_from_xp(1000) == 2
        assert level_from_xp(1060) == 2
        assert level_from_xp(2999) == 3

    def test_custom_base(self):
        """The base is a parameter, not a constant."""
        assert level_from_xp(1000, base_xp_per_level=250) == 5

    @pytest.mark.parametrize("bad_base", [0, -1, -1000])
    def test_non_positive_base_falls_back_to_default(self, bad_base):
        """A misconfigured base behaves like the default."""
        assert level_from_xp(1060, bad_base) == level_from_xp(
            1060, DEFAULT_BASE_XP_PER_LEVEL
        )

    def test_non_decreasing_and_at_least_one(self):
        """Level never drops as XP grows and is always ≥1."""
        previous = 0
        for xp in range(0, 25_000, 37):
            level = level_from_xp(xp)
            assert level >= 1
            assert level >= previous
            previous = level

    def test_pure(self):
        """Same input, same output."""
        assert level_from_xp(12_345) == level_from_xp(12_345)


@pytest.mark.unit
class TestLevelHelpers:
    """Test the helpers built on the leveling curve."""

    def test_xp_for_level(self):
        assert xp_for_level(1) == 0
        assert xp_for_level(2) == 1000
        assert xp_for_level(3, base_xp_per_level=500) == 1000

    def test_xp_for_level_is_inverse_of_level_from_xp(self):
        """The first XP value of a level maps back to that level."""
        for level in range(1, 30):
            assert level_from_xp(xp_for_level(level)) == level

    def test_xp_to_next_level(self):
        assert xp_to_next_level(0) == 1000
        assert xp_to_next_level(950) == 50
        assert xp_to_next_level(1000) == 1000

    def test_crossed_level_boundary(self):
        assert crossed_level_boundary(950, 1060) is True
        assert crossed_level_boundary(100, 900) is False
        assert crossed_level_boundary(1000, 1000) is False


@pytest.mark.unit
class TestMatchXP:
    """Test the match experience formula."""

    def test_base_award_only(self):
        """An empty match still pays the base XP."""
        assert compute_match_xp(0, 0, 0) == 100

    def test_weights(self):
        """10 per kill, 50 per wave, 1 per scrap."""
        assert compute_match_xp(kills=1, waves_survived=0, scrap_earned=0) == 110
        assert compute_match_xp(kills=0, waves_survived=1, scrap_earned=0) == 150
        assert compute_match_xp(kills=0, waves_survived=0, scrap_earned=7) == 107

    def test_combined(self):
        assert compute_match_xp(kills=12, waves_survived=5, scrap_earned=340) == 810
