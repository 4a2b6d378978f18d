"""
Progression Service - read access to a player's progression record.

Purpose
-------
Serve the "get progression" request: level, experience, prestige tier,
currency balance and lifetime counters. The record is created lazily on the
first access.

Design Notes
------------
- Level is derivable from experience. When a best-effort level update was
  lost earlier, the stored level lags behind; the read repairs it in the
  same transaction and reports the derived value.
- Writes to the record belong to the ledger, the match reward orchestrator
  and the prestige resetter; this service only creates and repairs.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from zdefense.core.logging.logger import get_logger
from zdefense.modules.shared.base_service import BaseService
from zdefense.modules.shared.formulas import (
    DEFAULT_BASE_XP_PER_LEVEL,
    level_from_xp,
    xp_to_next_level,
)
from .repository import ProgressionRepository

if TYPE_CHECKING:
    from logging import Logger

    from zdefense.core.config.manager import ConfigManager
    from zdefense.core.database.service import DatabaseService
    from zdefense.core.event.bus import EventBus


@dataclass(frozen=True)
class ProgressionSnapshot:
    player_id: int
    level: int
    experience: int
    xp_to_next_level: int
    prestige_tier: int
    currency_balance: int
    total_matches_played: int
    total_kills: int
    total_deaths: int
    total_waves_survived: int
    total_scrap_earned: int
    total_currency_earned: int
    updated_at: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return data


class ProgressionService(BaseService):
    """Lazily-created progression records and their read model."""

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(database, config_manager, event_bus, logger)
        self._progression_repo = ProgressionRepository(
            get_logger(f"{__name__}.ProgressionRepository")
        )

    @property
    def base_xp_per_level(self) -> int:
        return self._config.get_int(
            "progression.base_xp_per_level", DEFAULT_BASE_XP_PER_LEVEL
        )

    async def get_progression(self, player_id: int) -> ProgressionSnapshot:
        """
        Return the player's progression, creating the record on first access.
        """
        self.validate_positive_int(player_id, "player_id")
        base_xp = self.base_xp_per_level

        with self.storage_errors("get_progression", player_id=player_id):
            async with self.db.get_transaction() as session:
                progression = await self._progression_repo.get_or_create(
                    session, player_id
                )

                derived_level = level_from_xp(progression.experience, base_xp)
                stored_level = progression.level
                if derived_level > stored_level:
                    await self._progression_repo.raise_level(
                        session, player_id, derived_level
                    )
                    await session.refresh(progression)
                    self.log.info(
                        "Stored level repaired from experience",
                        extra={
                            "player_id": player_id,
                            "stored_level": stored_level,
                            "derived_level": derived_level,
                        },
                    )

                return ProgressionSnapshot(
                    player_id=player_id,
                    level=max(progression.level, derived_level),
                    experience=progression.experience,
                    xp_to_next_level=xp_to_next_level(progression.experience, base_xp),
                    prestige_tier=progression.prestige_tier,
                    currency_balance=progression.currency_balance,
                    total_matches_played=progression.total_matches_played,
                    total_kills=progression.total_kills,
                    total_deaths=progression.total_deaths,
                    total_waves_survived=progression.total_waves_survived,
                    total_scrap_earned=progression.total_scrap_earned,
                    total_currency_earned=progression.total_currency_earned,
                    updated_at=progression.updated_at,
                )
