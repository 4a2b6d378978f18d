"""
Shared Module

Purpose
-------
Domain-level foundations for every engine module:
- Domain exceptions and error handling
- Base service and repository patterns
- Pure progression formulas
- Best-effort follow-up execution

Usage
-----
    from zdefense.modules.shared import (
        BaseService,
        BaseRepository,
        InsufficientCurrencyError,
        level_from_xp,
    )
"""

from __future__ import annotations

# Base patterns
from .base_repository import BaseRepository
from .base_service import BaseService

# Domain exceptions
from .exceptions import (
    CosmeticAlreadyOwnedError,
    CosmeticNotFoundError,
    CosmeticNotOwnedError,
    EmptyLootTableError,
    InsufficientCurrencyError,
    InvalidStatsError,
    LoadoutNotFoundError,
    LootConfigurationError,
    LootTableEntryNotFoundError,
    LootTableNotFoundError,
    NoActiveLootTablesError,
    NoDropFromAnyTableError,
    NonPositiveWeightError,
    NotFoundError,
    ValidationError,
    ZDDomainException,
)

# Follow-ups
from .follow_ups import FollowUp, FollowUpOutcome, run_follow_ups

# Formulas
from .formulas import (
    DEFAULT_BASE_XP_PER_LEVEL,
    compute_match_xp,
    crossed_level_boundary,
    level_from_xp,
    xp_for_level,
    xp_to_next_level,
)

__all__ = [
    "BaseRepository",
    "BaseService",
    "ZDDomainException",
    "NotFoundError",
    "CosmeticNotFoundError",
    "LootTableNotFoundError",
    "LootTableEntryNotFoundError",
    "LoadoutNotFoundError",
    "CosmeticAlreadyOwnedError",
    "CosmeticNotOwnedError",
    "InsufficientCurrencyError",
    "ValidationError",
    "InvalidStatsError",
    "LootConfigurationError",
    "NoActiveLootTablesError",
    "NoDropFromAnyTableError",
    "EmptyLootTableError",
    "NonPositiveWeightError",
    "FollowUp",
    "FollowUpOutcome",
    "run_follow_ups",
    "DEFAULT_BASE_XP_PER_LEVEL",
    "compute_match_xp",
    "crossed_level_boundary",
    "level_from_xp",
    "xp_for_level",
    "xp_to_next_level",
]
