"""
Cosmetics data access: catalog, ownership and loadouts.

All methods take the caller's session; none of them commit.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from zdefense.core.database.dialect import upsert_insert
from zdefense.database.models import (
    CosmeticItem,
    CosmeticSlot,
    Loadout,
    LoadoutSlotAssignment,
    PlayerCosmetic,
    UnlockMethod,
)
from zdefense.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


# ============================================================================
# Catalog
# ============================================================================


class CosmeticRepository(BaseRepository[CosmeticItem]):
    """Read access to the cosmetic catalog."""

    def __init__(self, logger: Logger) -> None:
        super().__init__(CosmeticItem, logger)

    async def catalog(self, session: AsyncSession) -> List[CosmeticItem]:
        return await self.find_many_where(session, order_by=[CosmeticItem.id])

    async def prestige_cosmetics_for_tier(
        self, session: AsyncSession, tier: int
    ) -> List[CosmeticItem]:
        """Prestige-only items unlocked exactly at `tier`."""
        return await self.find_many_where(
            session,
            CosmeticItem.is_prestige_only.is_(True),
            CosmeticItem.unlock_level == tier,
            order_by=[CosmeticItem.id],
        )


# ============================================================================
# Ownership
# ============================================================================


class OwnershipRepository(BaseRepository[PlayerCosmetic]):
    """
    Binary cosmetic ownership.

    `grant()` is the single write path for every unlock method.
    """

    def __init__(self, logger: Logger) -> None:
        super().__init__(PlayerCosmetic, logger)

    async def grant(
        self,
        session: AsyncSession,
        player_id: int,
        cosmetic_id: int,
        method: UnlockMethod,
    ) -> bool:
        """
        Insert the ownership row if absent.

        Returns True when a row was inserted, False when the player already
        owned the cosmetic.
        """
        stmt = (
            upsert_insert(session, PlayerCosmetic)
            .values(
                player_id=player_id,
                cosmetic_id=cosmetic_id,
                unlock_method=method,
            )
            .on_conflict_do_nothing(index_elements=["player_id", "cosmetic_id"])
            .returning(PlayerCosmetic.cosmetic_id)
        )
        inserted = (await session.execute(stmt)).scalar_one_or_none() is not None

        self.log.debug(
            "Ownership grant",
            extra={
                "player_id": player_id,
                "cosmetic_id": cosmetic_id,
                "unlock_method": method.value,
                "inserted": inserted,
            },
        )
        return inserted

    async def owns(
        self, session: AsyncSession, player_id: int, cosmetic_id: int
    ) -> bool:
        return await self.exists(
            session,
            PlayerCosmetic.player_id == player_id,
            PlayerCosmetic.cosmetic_id == cosmetic_id,
        )

    async def list_owned(
        self, session: AsyncSession, player_id: int
    ) -> List[PlayerCosmetic]:
        """Newest unlock first; the catalog item is loaded with each row."""
        return await self.find_many_where(
            session,
            PlayerCosmetic.player_id == player_id,
            order_by=[
                PlayerCosmetic.unlocked_at.desc(),
                PlayerCosmetic.cosmetic_id.desc(),
            ],
        )


# ============================================================================
# Loadouts
# ============================================================================


class LoadoutRepository(BaseRepository[Loadout]):
    """Loadouts and their slot assignments."""

    def __init__(self, logger: Logger) -> None:
        super().__init__(Loadout, logger)

    async def get_active(
        self, session: AsyncSession, player_id: int
    ) -> Optional[Loadout]:
        return await self.find_one_where(
            session,
            Loadout.player_id == player_id,
            Loadout.is_active.is_(True),
        )

    async def get_for_player(
        self, session: AsyncSession, player_id: int, loadout_id: int
    ) -> Optional[Loadout]:
        return await self.find_one_where(
            session,
            Loadout.id == loadout_id,
            Loadout.player_id == player_id,
        )

    async def get_by_name(
        self, session: AsyncSession, player_id: int, name: str
    ) -> Optional[Loadout]:
        return await self.find_one_where(
            session,
            Loadout.player_id == player_id,
            Loadout.name == name,
        )

    async def list_for_player(
        self, session: AsyncSession, player_id: int
    ) -> List[Loadout]:
        return await self.find_many_where(
            session, Loadout.player_id == player_id, order_by=[Loadout.id]
        )

    async def deactivate_all(self, session: AsyncSession, player_id: int) -> None:
        await session.execute(
            update(Loadout)
            .where(Loadout.player_id == player_id, Loadout.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )

    async def mark_active(self, session: AsyncSession, loadout_id: int) -> None:
        await session.execute(
            update(Loadout)
            .where(Loadout.id == loadout_id)
            .values(is_active=True)
            .execution_options(synchronize_session=False)
        )

    async def ensure_active(
        self, session: AsyncSession, player_id: int, default_name: str
    ) -> Loadout:
        """
        Return the player's active loadout, creating or activating
        `default_name` when there is none.

        A concurrent request may create the active loadout first; the insert
        then fails on the one-active-per-player index inside its savepoint and
        the winner's row is returned.
        """
        active = await self.get_active(session, player_id)
        if active is not None:
            return active

        existing = await self.get_by_name(session, player_id, default_name)
        if existing is not None:
            await self.mark_active(session, existing.id)
            await session.refresh(existing)
            return existing

        try:
            async with session.begin_nested():
                loadout = await self.add(
                    session,
                    Loadout(player_id=player_id, name=default_name, is_active=True),
                )
        except IntegrityError:
            self.log.info(
                "Active loadout created concurrently; using existing",
                extra={"player_id": player_id},
            )
            winner = await self.get_active(session, player_id)
            if winner is None:
                raise
            return winner

        self.log.info(
            "Default loadout created",
            extra={"player_id": player_id, "loadout_id": loadout.id},
        )
        return loadout

    # ------------------------------------------------------------------ #
    # Slot assignments
    # ------------------------------------------------------------------ #

    async def clear_slot(
        self, session: AsyncSession, loadout_id: int, slot: CosmeticSlot
    ) -> int:
        result = await session.execute(
            delete(LoadoutSlotAssignment)
            .where(
                LoadoutSlotAssignment.loadout_id == loadout_id,
                LoadoutSlotAssignment.slot == slot,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount  # type: ignore[attr-defined]

    async def assign_slot(
        self,
        session: AsyncSession,
        loadout_id: int,
        slot: CosmeticSlot,
        cosmetic_id: int,
    ) -> Optional[int]:
        """
        Put `cosmetic_id` into `slot`, replacing any occupant in one upsert.

        Returns the cosmetic that previously held the slot, if any.
        """
        previous = (
            await session.execute(
                select(LoadoutSlotAssignment.cosmetic_id).where(
                    LoadoutSlotAssignment.loadout_id == loadout_id,
                    LoadoutSlotAssignment.slot == slot,
                )
            )
        ).scalar_one_or_none()

        stmt = upsert_insert(session, LoadoutSlotAssignment).values(
            loadout_id=loadout_id, slot=slot, cosmetic_id=cosmetic_id
        )
        await session.execute(
            stmt.on_conflict_do_update(
                index_elements=["loadout_id", "slot"],
                set_={"cosmetic_id": stmt.excluded.cosmetic_id},
            )
        )
        return previous

    async def assignments(
        self, session: AsyncSession, loadout_id: int
    ) -> Dict[CosmeticSlot, int]:
        result = await session.execute(
            select(LoadoutSlotAssignment.slot, LoadoutSlotAssignment.cosmetic_id)
            .where(LoadoutSlotAssignment.loadout_id == loadout_id)
            .order_by(LoadoutSlotAssignment.slot)
        )
        return {slot: cosmetic_id for slot, cosmetic_id in result.all()}
