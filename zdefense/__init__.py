"""Progression and economy engine for a multiplayer wave-survival game."""

__version__ = "1.0.0"
