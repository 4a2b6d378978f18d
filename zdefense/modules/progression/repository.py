"""
Progression Record Store - data access for PlayerProgression.

Every mutation is a single atomic statement evaluated by the database
(`col = col + :delta ... RETURNING`), so concurrent writers for the same
player serialize on the row instead of losing updates. All methods run on
the caller's session and never commit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from sqlalchemy import select, update

from zdefense.core.database.dialect import upsert_insert
from zdefense.database.models import PlayerProgression
from zdefense.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class ExperienceChange:
    old_experience: int
    new_experience: int
    stored_level: int


class ProgressionRepository(BaseRepository[PlayerProgression]):
    """Repository for PlayerProgression rows."""

    def __init__(self, logger: Logger) -> None:
        super().__init__(PlayerProgression, logger)

    async def ensure_row(self, session: AsyncSession, player_id: int) -> bool:
        """
        Create the player's row with starting values if it does not exist.

        Returns True when this call created the row.
        """
        stmt = (
            upsert_insert(session, PlayerProgression)
            .values(player_id=player_id)
            .on_conflict_do_nothing(index_elements=["player_id"])
            .returning(PlayerProgression.player_id)
        )
        created = (await session.execute(stmt)).scalar_one_or_none() is not None

        if created:
            self.log.info(
                "Progression row created",
                extra={"player_id": player_id},
            )
        return created

    async def get_or_create(
        self, session: AsyncSession, player_id: int
    ) -> PlayerProgression:
        await self.ensure_row(session, player_id)
        progression = await self.find_one_where(
            session, PlayerProgression.player_id == player_id
        )
        assert progression is not None
        await session.refresh(progression)
        return progression

    async def add_experience(
        self, session: AsyncSession, player_id: int, amount: int
    ) -> Optional[ExperienceChange]:
        """Add `amount` XP atomically. None if the player has no row."""
        stmt = (
            update(PlayerProgression)
            .where(PlayerProgression.player_id == player_id)
            .values(experience=PlayerProgression.experience + amount)
            .returning(PlayerProgression.experience, PlayerProgression.level)
            .execution_options(synchronize_session=False)
        )
        row = (await session.execute(stmt)).one_or_none()
        if row is None:
            return None

        new_experience, stored_level = row
        return ExperienceChange(
            old_experience=new_experience - amount,
            new_experience=new_experience,
            stored_level=stored_level,
        )

    async def increment_match_stats(
        self,
        session: AsyncSession,
        player_id: int,
        *,
        kills: int,
        deaths: int,
        waves_survived: int,
        scrap_earned: int,
        currency_earned: int,
    ) -> bool:
        """Bump every lifetime counter for one completed match."""
        stmt = (
            update(PlayerProgression)
            .where(PlayerProgression.player_id == player_id)
            .values(
                total_matches_played=PlayerProgression.total_matches_played + 1,
                total_kills=PlayerProgression.total_kills + kills,
                total_deaths=PlayerProgression.total_deaths + deaths,
                total_waves_survived=PlayerProgression.total_waves_survived
                + waves_survived,
                total_scrap_earned=PlayerProgression.total_scrap_earned + scrap_earned,
                total_currency_earned=PlayerProgression.total_currency_earned
                + currency_earned,
            )
            .returning(PlayerProgression.total_matches_played)
            .execution_options(synchronize_session=False)
        )
        return (await session.execute(stmt)).one_or_none() is not None

    async def raise_level(
        self, session: AsyncSession, player_id: int, new_level: int
    ) -> bool:
        """
        Store `new_level` if it is higher than the stored level.

        Returns True when the row changed.
        """
        stmt = (
            update(PlayerProgression)
            .where(
                PlayerProgression.player_id == player_id,
                PlayerProgression.level < new_level,
            )
            .values(level=new_level)
            .returning(PlayerProgression.level)
            .execution_options(synchronize_session=False)
        )
        return (await session.execute(stmt)).one_or_none() is not None

    async def apply_balance_delta(
        self, session: AsyncSession, player_id: int, amount: int
    ) -> Optional[int]:
        """
        Add `amount` (signed) to the balance unless it would go negative.

        Returns the new balance, or None when no row was updated (unknown
        player, or a debit larger than the balance).
        """
        stmt = (
            update(PlayerProgression)
            .where(
                PlayerProgression.player_id == player_id,
                PlayerProgression.currency_balance + amount >= 0,
            )
            .values(currency_balance=PlayerProgression.currency_balance + amount)
            .returning(PlayerProgression.currency_balance)
            .execution_options(synchronize_session=False)
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    async def get_balance(self, session: AsyncSession, player_id: int) -> int:
        stmt = select(PlayerProgression.currency_balance).where(
            PlayerProgression.player_id == player_id
        )
        balance = (await session.execute(stmt)).scalar_one_or_none()
        return balance or 0

    async def prestige_reset(self, session: AsyncSession, player_id: int) -> int:
        """
        Reset level/experience and advance the prestige tier in one statement.

        Returns the new tier. The row must exist.
        """
        stmt = (
            update(PlayerProgression)
            .where(PlayerProgression.player_id == player_id)
            .values(
                level=1,
                experience=0,
                prestige_tier=PlayerProgression.prestige_tier + 1,
            )
            .returning(PlayerProgression.prestige_tier)
            .execution_options(synchronize_session=False)
        )
        return (await session.execute(stmt)).scalar_one()
