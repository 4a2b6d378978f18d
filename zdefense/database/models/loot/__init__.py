"""
Loot domain ORM models.

Exports:
- LootTable
- LootTableEntry
"""

from .loot_table import LootTable, LootTableEntry

__all__ = ["LootTable", "LootTableEntry"]
