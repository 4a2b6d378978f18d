"""
Progression domain ORM models.

Exports:
- PlayerProgression
"""

from .player_progression import PlayerProgression

__all__ = ["PlayerProgression"]
