"""
Progression Formulas

Purpose
-------
Pure calculation functions for the progression rules: the linear leveling
curve and the match experience formula.

Design Notes
------------
All formulas:
- Accept parameters explicitly (no config access; callers pass the
  configured `base_xp_per_level`)
- Have no side effects and no I/O
- Are total over non-negative inputs

The match XP weights are fixed game-design constants, not configuration.

Usage
-----
    from zdefense.modules.shared.formulas import level_from_xp

    level = level_from_xp(1060, base_xp_per_level=1000)  # 2
"""

from __future__ import annotations

DEFAULT_BASE_XP_PER_LEVEL = 1000

# Match experience weights
MATCH_BASE_XP = 100
XP_PER_KILL = 10
XP_PER_WAVE = 50
XP_PER_SCRAP = 1


def _effective_base(base_xp_per_level: int) -> int:
    if base_xp_per_level <= 0:
        return DEFAULT_BASE_XP_PER_LEVEL
    return base_xp_per_level


def level_from_xp(xp: int, base_xp_per_level: int = DEFAULT_BASE_XP_PER_LEVEL) -> int:
    """
    Map cumulative experience to a level number.

    A misconfigured base (≤0) falls back to DEFAULT_BASE_XP_PER_LEVEL.

    Example:
        >>> level_from_xp(0)
        1
        >>> level_from_xp(999)
        1
        >>> level_from_xp(1060)
        2
        >>> level_from_xp(1060, base_xp_per_level=0)
        2
    """
    base = _effective_base(base_xp_per_level)
    return max(1, xp // base + 1)


def xp_for_level(level: int, base_xp_per_level: int = DEFAULT_BASE_XP_PER_LEVEL) -> int:
    """
    Cumulative experience at which `level` begins.

    Example:
        >>> xp_for_level(1)
        0
        >>> xp_for_level(3, base_xp_per_level=500)
        1000
    """
    base = _effective_base(base_xp_per_level)
    return max(0, level - 1) * base


def xp_to_next_level(xp: int, base_xp_per_level: int = DEFAULT_BASE_XP_PER_LEVEL) -> int:
    """
    Experience still needed to reach the next level.

    Example:
        >>> xp_to_next_level(950)
        50
        >>> xp_to_next_level(1000)
        1000
    """
    next_level = level_from_xp(xp, base_xp_per_level) + 1
    return xp_for_level(next_level, base_xp_per_level) - max(0, xp)


def crossed_level_boundary(
    old_xp: int, new_xp: int, base_xp_per_level: int = DEFAULT_BASE_XP_PER_LEVEL
) -> bool:
    """
    Whether moving from `old_xp` to `new_xp` lands on a higher level.

    Example:
        >>> crossed_level_boundary(950, 1060)
        True
        >>> crossed_level_boundary(100, 900)
        False
    """
    return level_from_xp(new_xp, base_xp_per_level) > level_from_xp(
        old_xp, base_xp_per_level
    )


def compute_match_xp(kills: int, waves_survived: int, scrap_earned: int) -> int:
    """
    Experience awarded for one completed match.

    Deaths do not affect experience.

    Example:
        >>> compute_match_xp(kills=1, waves_survived=0, scrap_earned=0)
        110
        >>> compute_match_xp(kills=12, waves_survived=5, scrap_earned=340)
        810
    """
    return (
        MATCH_BASE_XP
        + XP_PER_KILL * kills
        + XP_PER_WAVE * waves_survived
        + XP_PER_SCRAP * scrap_earned
    )
