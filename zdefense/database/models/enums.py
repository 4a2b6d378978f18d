"""
Database Model Enums
====================

Lightweight enumerations for database models.

These enums provide type-safe constants for categorical fields across the
schema. They are used in model definitions and referenced by the service
layer for business logic. Values are the strings stored in the database.
"""

from __future__ import annotations

import enum
from typing import Type

from sqlalchemy import Enum as SAEnum


class CosmeticSlot(str, enum.Enum):
    """
    Display slot a cosmetic occupies in a loadout.

    A loadout holds at most one cosmetic per slot.
    """

    CHARACTER_SKIN = "character_skin"
    WEAPON_SKIN = "weapon_skin"
    EMOTE = "emote"
    TAUNT = "taunt"
    BADGE = "badge"
    TITLE = "title"
    PARTICLE_EFFECT = "particle_effect"
    OTHER = "other"


class CosmeticRarity(str, enum.Enum):
    """Rarity tier shown in the catalog."""

    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class UnlockMethod(str, enum.Enum):
    """How a player came to own a cosmetic."""

    LEVEL_UP = "level_up"
    PURCHASE = "purchase"
    LOOT_DROP = "loot_drop"
    PRESTIGE = "prestige"


class CurrencyTransactionKind(str, enum.Enum):
    """
    Reason attached to every currency ledger row.

    Credits and debits of every kind flow through the same ledger; the kind
    only classifies the row.
    """

    MATCH_REWARD = "match_reward"
    PURCHASE = "purchase"
    PRESTIGE_REWARD = "prestige_reward"
    ADMIN_GRANT = "admin_grant"
    REFUND = "refund"
    OTHER = "other"


def enum_column(enum_cls: Type[enum.Enum]) -> SAEnum:
    """Portable string-backed column type storing the enum's values."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )
