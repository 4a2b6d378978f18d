"""
Cosmetics domain ORM models.

Exports:
- CosmeticItem
- PlayerCosmetic
- Loadout
- LoadoutSlotAssignment
"""

from .cosmetic_item import CosmeticItem
from .loadout import Loadout, LoadoutSlotAssignment
from .player_cosmetic import PlayerCosmetic

__all__ = [
    "CosmeticItem",
    "PlayerCosmetic",
    "Loadout",
    "LoadoutSlotAssignment",
]
