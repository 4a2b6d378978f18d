"""
Loot Table Service - administrative management of loot tables and entries.

Purpose
-------
Create, read, update and delete the loot configuration the drop engine rolls
against. Validation here keeps tables computable:

- `drop_chance` in [0, 1]
- `weight` ≥ 1
- 1 ≤ `min_quantity` ≤ `max_quantity`
- entries reference existing tables and cosmetics

Deleting a table deletes its entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from zdefense.core.logging.logger import get_logger
from zdefense.database.models import CosmeticItem, LootTable, LootTableEntry
from zdefense.modules.cosmetics.repository import CosmeticRepository
from zdefense.modules.shared.base_service import BaseService
from zdefense.modules.shared.exceptions import (
    CosmeticNotFoundError,
    LootTableEntryNotFoundError,
    LootTableNotFoundError,
    ValidationError,
)
from .repository import LootTableEntryRepository, LootTableRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from zdefense.core.config.manager import ConfigManager
    from zdefense.core.database.service import DatabaseService
    from zdefense.core.event.bus import EventBus

_UNSET: Any = object()


@dataclass(frozen=True)
class LootEntryDetail:
    """An entry together with the catalog record it awards."""

    entry: LootTableEntry
    cosmetic: CosmeticItem

    def to_dict(self) -> Dict[str, Any]:
        return {**self.entry.to_dict(), "cosmetic": self.cosmetic.to_dict()}


class LootTableService(BaseService):
    """Loot table administration."""

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(database, config_manager, event_bus, logger)
        self._table_repo = LootTableRepository(
            get_logger(f"{__name__}.LootTableRepository")
        )
        self._entry_repo = LootTableEntryRepository(
            get_logger(f"{__name__}.LootTableEntryRepository")
        )
        self._cosmetic_repo = CosmeticRepository(
            get_logger(f"{__name__}.CosmeticRepository")
        )

    # ========================================================================
    # Validation helpers
    # ========================================================================

    def _validate_table_fields(self, table_name: str, drop_chance: float) -> None:
        if not table_name or not table_name.strip():
            raise ValidationError("name", "loot table name must not be blank")
        if not isinstance(drop_chance, (int, float)) or isinstance(drop_chance, bool):
            raise ValidationError("drop_chance", "drop_chance must be a number")
        self.validate_range(drop_chance, "drop_chance", 0.0, 1.0)

    def _validate_entry_fields(
        self, weight: int, min_quantity: int, max_quantity: int
    ) -> None:
        self.validate_positive_int(weight, "weight")
        self.validate_positive_int(min_quantity, "min_quantity")
        self.validate_positive_int(max_quantity, "max_quantity")
        if min_quantity > max_quantity:
            raise ValidationError(
                "max_quantity",
                f"max_quantity ({max_quantity}) must be >= min_quantity ({min_quantity})",
            )

    async def _require_table(
        self, session: AsyncSession, loot_table_id: int
    ) -> LootTable:
        table = await self._table_repo.get(session, loot_table_id)
        if table is None:
            raise LootTableNotFoundError(loot_table_id)
        return table

    async def _require_entry(
        self, session: AsyncSession, entry_id: int
    ) -> LootTableEntry:
        entry = await self._entry_repo.get(session, entry_id)
        if entry is None:
            raise LootTableEntryNotFoundError(entry_id)
        return entry

    async def _require_cosmetic(self, session: AsyncSession, cosmetic_id: int) -> None:
        if await self._cosmetic_repo.get(session, cosmetic_id) is None:
            raise CosmeticNotFoundError(cosmetic_id)

    async def _ensure_unique_name(
        self, session: AsyncSession, table_name: str, exclude_id: Optional[int] = None
    ) -> None:
        conditions = [LootTable.name == table_name]
        if exclude_id is not None:
            conditions.append(LootTable.id != exclude_id)
        if await self._table_repo.exists(session, *conditions):
            raise ValidationError(
                "name", f"a loot table named '{table_name}' already exists"
            )

    # ========================================================================
    # Tables
    # ========================================================================

    async def create_loot_table(
        self,
        name: str,
        drop_chance: float,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> LootTable:
        self._validate_table_fields(name, drop_chance)
        self.log_operation(
            "create_loot_table", table_name=name, drop_chance=drop_chance
        )

        with self.storage_errors("create_loot_table"):
            async with self.db.get_transaction() as session:
                await self._ensure_unique_name(session, name)
                table = await self._table_repo.add(
                    session,
                    LootTable(
                        name=name,
                        description=description,
                        drop_chance=float(drop_chance),
                        is_active=is_active,
                    ),
                )

        self.log.info(
            "Loot table created",
            extra={"loot_table_id": table.id, "table_name": name},
        )
        return table

    async def get_loot_table(self, loot_table_id: int) -> LootTable:
        with self.storage_errors("get_loot_table"):
            async with self.db.get_session() as session:
                return await self._require_table(session, loot_table_id)

    async def list_loot_tables(self) -> List[LootTable]:
        with self.storage_errors("list_loot_tables"):
            async with self.db.get_session() as session:
                return await self._table_repo.list_all(session)

    async def list_active_loot_tables(self) -> List[LootTable]:
        with self.storage_errors("list_active_loot_tables"):
            async with self.db.get_session() as session:
                return await self._table_repo.list_active(session)

    async def update_loot_table(
        self,
        loot_table_id: int,
        *,
        name: Optional[str] = None,
        description: Optional[str] = _UNSET,
        drop_chance: Optional[float] = None,
        is_active: Optional[bool] = None,
    ) -> LootTable:
        """Update the given fields; omitted fields keep their values."""
        self.log_operation("update_loot_table", loot_table_id=loot_table_id)

        with self.storage_errors("update_loot_table"):
            async with self.db.get_transaction() as session:
                table = await self._require_table(session, loot_table_id)

                new_name = table.name if name is None else name
                new_chance = table.drop_chance if drop_chance is None else drop_chance
                self._validate_table_fields(new_name, new_chance)
                if new_name != table.name:
                    await self._ensure_unique_name(session, new_name, loot_table_id)

                table.name = new_name
                table.drop_chance = float(new_chance)
                if description is not _UNSET:
                    table.description = description
                if is_active is not None:
                    table.is_active = is_active
                await session.flush()

        return table

    async def delete_loot_table(self, loot_table_id: int) -> None:
        self.log_operation("delete_loot_table", loot_table_id=loot_table_id)

        with self.storage_errors("delete_loot_table"):
            async with self.db.get_transaction() as session:
                table = await self._require_table(session, loot_table_id)
                await self._table_repo.delete(session, table)

        self.log.info("Loot table deleted", extra={"loot_table_id": loot_table_id})

    # ========================================================================
    # Entries
    # ========================================================================

    async def create_loot_table_entry(
        self,
        loot_table_id: int,
        cosmetic_id: int,
        weight: int = 1,
        min_quantity: int = 1,
        max_quantity: int = 1,
    ) -> LootTableEntry:
        self._validate_entry_fields(weight, min_quantity, max_quantity)
        self.log_operation(
            "create_loot_table_entry",
            loot_table_id=loot_table_id,
            cosmetic_id=cosmetic_id,
            weight=weight,
        )

        with self.storage_errors("create_loot_table_entry"):
            async with self.db.get_transaction() as session:
                await self._require_table(session, loot_table_id)
                await self._require_cosmetic(session, cosmetic_id)
                entry = await self._entry_repo.add(
                    session,
                    LootTableEntry(
                        loot_table_id=loot_table_id,
                        cosmetic_id=cosmetic_id,
                        weight=weight,
                        min_quantity=min_quantity,
                        max_quantity=max_quantity,
                    ),
                )

        return entry

    async def get_loot_table_entry(self, entry_id: int) -> LootTableEntry:
        with self.storage_errors("get_loot_table_entry"):
            async with self.db.get_session() as session:
                return await self._require_entry(session, entry_id)

    async def list_loot_table_entries(self, loot_table_id: int) -> List[LootTableEntry]:
        with self.storage_errors("list_loot_table_entries"):
            async with self.db.get_session() as session:
                await self._require_table(session, loot_table_id)
                return await self._entry_repo.list_for_table(session, loot_table_id)

    async def list_loot_table_entries_with_cosmetics(
        self, loot_table_id: int
    ) -> List[LootEntryDetail]:
        with self.storage_errors("list_loot_table_entries_with_cosmetics"):
            async with self.db.get_session() as session:
                await self._require_table(session, loot_table_id)
                rows = await self._entry_repo.list_with_cosmetics(session, loot_table_id)
        return [LootEntryDetail(entry=entry, cosmetic=cosmetic) for entry, cosmetic in rows]

    async def update_loot_table_entry(
        self,
        entry_id: int,
        *,
        loot_table_id: Optional[int] = None,
        cosmetic_id: Optional[int] = None,
        weight: Optional[int] = None,
        min_quantity: Optional[int] = None,
        max_quantity: Optional[int] = None,
    ) -> LootTableEntry:
        """Update the given fields; omitted fields keep their values."""
        self.log_operation("update_loot_table_entry", entry_id=entry_id)

        with self.storage_errors("update_loot_table_entry"):
            async with self.db.get_transaction() as session:
                entry = await self._require_entry(session, entry_id)

                new_weight = entry.weight if weight is None else weight
                new_min = entry.min_quantity if min_quantity is None else min_quantity
                new_max = entry.max_quantity if max_quantity is None else max_quantity
                self._validate_entry_fields(new_weight, new_min, new_max)

                if loot_table_id is not None and loot_table_id != entry.loot_table_id:
                    await self._require_table(session, loot_table_id)
                    entry.loot_table_id = loot_table_id
                if cosmetic_id is not None and cosmetic_id != entry.cosmetic_id:
                    await self._require_cosmetic(session, cosmetic_id)
                    entry.cosmetic_id = cosmetic_id

                entry.weight = new_weight
                entry.min_quantity = new_min
                entry.max_quantity = new_max
                await session.flush()

        return entry

    async def delete_loot_table_entry(self, entry_id: int) -> None:
        self.log_operation("delete_loot_table_entry", entry_id=entry_id)

        with self.storage_errors("delete_loot_table_entry"):
            async with self.db.get_transaction() as session:
                entry = await self._require_entry(session, entry_id)
                await self._entry_repo.delete(session, entry)
