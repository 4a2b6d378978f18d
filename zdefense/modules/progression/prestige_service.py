"""
Prestige Service - reset-and-advance with tier-exclusive cosmetics.

Purpose
-------
`prestige_player()` resets level to 1 and experience to 0 and advances the
prestige tier, then grants every prestige-only cosmetic unlocked at the new
tier that the player does not already own.

Transaction Model
-----------------
One unit of work:
1. Primary mutation: a single atomic update returning the new tier
2. Follow-ups: one grant per eligible cosmetic, each in its own savepoint;
   a failing grant is logged and skipped without undoing the reset

No currency effects. Not idempotent: every call advances the tier, so the
handler layer must gate it behind an explicit player action.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List

from zdefense.core.event import events
from zdefense.core.logging.logger import get_logger
from zdefense.database.models import UnlockMethod
from zdefense.modules.cosmetics.repository import CosmeticRepository, OwnershipRepository
from zdefense.modules.shared.base_service import BaseService
from zdefense.modules.shared.follow_ups import FollowUp, run_follow_ups
from .repository import ProgressionRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from zdefense.core.config.manager import ConfigManager
    from zdefense.core.database.service import DatabaseService
    from zdefense.core.event.bus import EventBus


@dataclass(frozen=True)
class PrestigeResult:
    player_id: int
    new_tier: int
    granted_cosmetic_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "prestige_tier": self.new_tier,
            "granted_cosmetic_ids": list(self.granted_cosmetic_ids),
        }


class PrestigeService(BaseService):
    """Prestige resetter."""

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
        self._cosmetic_repo = CosmeticRepository(
            get_logger(f"{__name__}.CosmeticRepository")
        )
        self._ownership_repo = OwnershipRepository(
            get_logger(f"{__name__}.OwnershipRepository")
        )

    def _grant_follow_up(self, player_id: int, cosmetic_id: int, tier: int) -> FollowUp:
        async def grant(session: AsyncSession) -> bool:
            return await self._ownership_repo.grant(
                session, player_id, cosmetic_id, UnlockMethod.PRESTIGE
            )

        return FollowUp(
            name=f"prestige_grant:{cosmetic_id}",
            action=grant,
            context={
                "player_id": player_id,
                "cosmetic_id": cosmetic_id,
                "prestige_tier": tier,
            },
        )

    async def prestige_player(self, player_id: int) -> PrestigeResult:
        """
        Reset level/experience, advance the tier and grant tier cosmetics.

        Returns the new tier and the ids of the cosmetics granted by this call.
        """
        self.validate_positive_int(player_id, "player_id")
        self.log_operation("prestige_player", player_id=player_id)

        with self.storage_errors("prestige_player", player_id=player_id):
            async with self.db.get_transaction() as session:
                await self._progression_repo.ensure_row(session, player_id)
                new_tier = await self._progression_repo.prestige_reset(
                    session, player_id
                )

                candidates = await self._cosmetic_repo.prestige_cosmetics_for_tier(
                    session, new_tier
                )
                follow_ups = [
                    self._grant_follow_up(player_id, cosmetic.id, new_tier)
                    for cosmetic in candidates
                ]
                outcomes = await run_follow_ups(session, follow_ups, self.log)

                # A grant that inserted nothing was already owned
                granted_ids = [
                    cosmetic.id
                    for cosmetic, outcome in zip(candidates, outcomes)
                    if outcome.succeeded and outcome.result
                ]

        self.log.info(
            "Player prestiged",
            extra={
                "player_id": player_id,
                "prestige_tier": new_tier,
                "granted_cosmetic_ids": granted_ids,
                "failed_grants": sum(1 for o in outcomes if not o.succeeded),
            },
        )

        await self.emit_event(
            events.PRESTIGED,
            {"player_id": player_id, "prestige_tier": new_tier},
        )
        for cosmetic_id in granted_ids:
            await self.emit_event(
                events.COSMETIC_GRANTED,
                {
                    "player_id": player_id,
                    "cosmetic_id": cosmetic_id,
                    "unlock_method": UnlockMethod.PRESTIGE.value,
                },
            )

        return PrestigeResult(
            player_id=player_id,
            new_tier=new_tier,
            granted_cosmetic_ids=granted_ids,
        )
