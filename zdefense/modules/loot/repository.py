"""Loot table and entry data access."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Tuple

from sqlalchemy import select

from zdefense.database.models import CosmeticItem, LootTable, LootTableEntry
from zdefense.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


class LootTableRepository(BaseRepository[LootTable]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(LootTable, logger)

    async def list_all(self, session: AsyncSession) -> List[LootTable]:
        return await self.find_many_where(session, order_by=[LootTable.id])

    async def list_active(self, session: AsyncSession) -> List[LootTable]:
        """Active tables in id order, the order drops are rolled in."""
        return await self.find_many_where(
            session, LootTable.is_active.is_(True), order_by=[LootTable.id]
        )


class LootTableEntryRepository(BaseRepository[LootTableEntry]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(LootTableEntry, logger)

    async def list_for_table(
        self, session: AsyncSession, loot_table_id: int
    ) -> List[LootTableEntry]:
        return await self.find_many_where(
            session,
            LootTableEntry.loot_table_id == loot_table_id,
            order_by=[LootTableEntry.id],
        )

    async def list_with_cosmetics(
        self, session: AsyncSession, loot_table_id: int
    ) -> List[Tuple[LootTableEntry, CosmeticItem]]:
        result = await session.execute(
            select(LootTableEntry, CosmeticItem)
            .join(CosmeticItem, CosmeticItem.id == LootTableEntry.cosmetic_id)
            .where(LootTableEntry.loot_table_id == loot_table_id)
            .order_by(LootTableEntry.id)
        )
        rows = [(entry, cosmetic) for entry, cosmetic in result.all()]

        self.log.debug(
            "Repository.list_with_cosmetics: LootTableEntry",
            extra={"loot_table_id": loot_table_id, "found_count": len(rows)},
        )
        return rows
