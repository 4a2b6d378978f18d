"""
Loot Drop Service - weighted-random cosmetic rewards.

Purpose
-------
`generate_loot_drop()` rolls the active loot tables, picks a weighted entry
from the table that hit and grants the cosmetic to the player with unlock
method `loot_drop`. A duplicate grant is a successful no-op: ownership is
binary, so the player simply keeps the item.

Design Notes
------------
- The whole drop runs in one transaction.
- Randomness comes from an injected `random.Random` (seedable in tests).
- Selection is delegated to the pure functions in `selection`.
- Loot configuration problems surface as `LootConfigurationError`
  subclasses and are logged at WARNING.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

from zdefense.core.event import events
from zdefense.core.logging.logger import get_logger
from zdefense.database.models import CosmeticItem, UnlockMethod
from zdefense.modules.cosmetics.repository import CosmeticRepository, OwnershipRepository
from zdefense.modules.shared.base_service import BaseService
from zdefense.modules.shared.exceptions import (
    CosmeticNotFoundError,
    LootConfigurationError,
)
from .repository import LootTableEntryRepository, LootTableRepository
from .selection import roll_loot_table, select_weighted_entry

if TYPE_CHECKING:
    from logging import Logger

    from zdefense.core.config.manager import ConfigManager
    from zdefense.core.database.service import DatabaseService
    from zdefense.core.event.bus import EventBus


@dataclass(frozen=True)
class LootDropResult:
    player_id: int
    loot_table_id: int
    cosmetic: CosmeticItem
    newly_granted: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "loot_table_id": self.loot_table_id,
            "cosmetic": self.cosmetic.to_dict(),
            "newly_granted": self.newly_granted,
        }


class LootDropService(BaseService):
    """
    Loot drop engine.

    Dependencies
    ------------
    - DatabaseService: one transaction per drop
    - random.Random: injected random source
    - EventBus: loot.dropped, cosmetics.granted
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(database, config_manager, event_bus, logger)
        self._rng = rng or random.Random()
        self._table_repo = LootTableRepository(
            get_logger(f"{__name__}.LootTableRepository")
        )
        self._entry_repo = LootTableEntryRepository(
            get_logger(f"{__name__}.LootTableEntryRepository")
        )
        self._cosmetic_repo = CosmeticRepository(
            get_logger(f"{__name__}.CosmeticRepository")
        )
        self._ownership_repo = OwnershipRepository(
            get_logger(f"{__name__}.OwnershipRepository")
        )

    async def generate_loot_drop(self, player_id: int) -> LootDropResult:
        """
        Roll for a cosmetic drop and grant it.

        Raises:
            NoActiveLootTablesError: No table is active
            NoDropFromAnyTableError: Every table's drop roll missed
            EmptyLootTableError: The selected table has no entries
            NonPositiveWeightError: The selected table's weights sum to ≤0
        """
        self.validate_positive_int(player_id, "player_id")
        self.log_operation("generate_loot_drop", player_id=player_id)

        try:
            with self.storage_errors("generate_loot_drop", player_id=player_id):
                async with self.db.get_transaction() as session:
                    tables = await self._table_repo.list_active(session)
                    table = roll_loot_table(tables, self._rng)

                    entries = await self._entry_repo.list_for_table(session, table.id)
                    entry = select_weighted_entry(entries, self._rng, table.id)

                    cosmetic = await self._cosmetic_repo.get(session, entry.cosmetic_id)
                    if cosmetic is None:
                        raise CosmeticNotFoundError(entry.cosmetic_id)

                    newly_granted = await self._ownership_repo.grant(
                        session, player_id, cosmetic.id, UnlockMethod.LOOT_DROP
                    )
                    loot_table_id = table.id
        except LootConfigurationError as exc:
            self.log.warning(
                "Loot drop could not be computed",
                extra={"player_id": player_id, "error_code": exc.error_code},
            )
            raise

        self.log.info(
            "Loot dropped",
            extra={
                "player_id": player_id,
                "loot_table_id": loot_table_id,
                "cosmetic_id": cosmetic.id,
                "newly_granted": newly_granted,
            },
        )

        await self.emit_event(
            events.LOOT_DROPPED,
            {
                "player_id": player_id,
                "loot_table_id": loot_table_id,
                "cosmetic_id": cosmetic.id,
                "newly_granted": newly_granted,
            },
        )
        if newly_granted:
            await self.emit_event(
                events.COSMETIC_GRANTED,
                {
                    "player_id": player_id,
                    "cosmetic_id": cosmetic.id,
                    "unlock_method": UnlockMethod.LOOT_DROP.value,
                },
            )

        return LootDropResult(
            player_id=player_id,
            loot_table_id=loot_table_id,
            cosmetic=cosmetic,
            newly_granted=newly_granted,
        )
