"""
Database Models Package
========================

SQLAlchemy ORM models for the progression engine, organized by domain.

All models:
- Are schema-only, no business logic
- Use Mapped[] syntax with mapped_column()
- Inherit from the shared mixins (IdMixin, TimestampMixin) where they apply
- Declare explicit foreign keys with CASCADE/RESTRICT rules
- Name every CHECK constraint so the naming convention can apply

Domain Organization:
--------------------
- progression: PlayerProgression
- economy: CurrencyTransaction
- cosmetics: CosmeticItem, PlayerCosmetic, Loadout, LoadoutSlotAssignment
- loot: LootTable, LootTableEntry
- enums: Shared type-safe enumerations
"""

from zdefense.core.database.base import Base

from .cosmetics import CosmeticItem, Loadout, LoadoutSlotAssignment, PlayerCosmetic
from .economy import CurrencyTransaction
from .enums import CosmeticRarity, CosmeticSlot, CurrencyTransactionKind, UnlockMethod
from .loot import LootTable, LootTableEntry
from .progression import PlayerProgression

__all__ = [
    "Base",
    # Progression
    "PlayerProgression",
    # Economy
    "CurrencyTransaction",
    # Cosmetics
    "CosmeticItem",
    "PlayerCosmetic",
    "Loadout",
    "LoadoutSlotAssignment",
    # Loot
    "LootTable",
    "LootTableEntry",
    # Enums
    "CosmeticSlot",
    "CosmeticRarity",
    "UnlockMethod",
    "CurrencyTransactionKind",
]
