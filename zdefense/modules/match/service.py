"""
Match Reward Service - experience, counters and currency for completed matches.

Purpose
-------
Turn a player's raw match statistics into durable progression:

    xp = 100 + 10 * kills + 50 * waves_survived + 1 * scrap_earned

Transaction Model
-----------------
Per player, one unit of work:
1. Create the progression row if missing
2. Bump lifetime counters (matches +1, kills, deaths, waves, scrap, currency)
3. Add the XP with one atomic update
4. Record a higher level as a best-effort follow-up; the level is derivable
   from XP, so a failure here is logged and repaired on the next read
5. Credit `currency_earned` to the ledger (kind `match_reward`) when > 0

`award_match_rewards()` commits one player independently.
`award_match_rewards_for_match()` applies every player of a match in ONE
transaction: if any player fails, nobody's rewards are committed.

Events (after commit)
---------------------
- progression.match_rewarded (always)
- progression.level_up (new level > old level)
- economy.currency_changed (currency credited)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence

from zdefense.core.event import events
from zdefense.core.logging.logger import get_logger, log_context
from zdefense.database.models import CurrencyTransactionKind
from zdefense.modules.progression.repository import ProgressionRepository
from zdefense.modules.shared.base_service import BaseService
from zdefense.modules.shared.exceptions import InvalidStatsError
from zdefense.modules.shared.follow_ups import FollowUp, run_follow_ups
from zdefense.modules.shared.formulas import (
    DEFAULT_BASE_XP_PER_LEVEL,
    compute_match_xp,
    level_from_xp,
)
from .rewards import MatchRewardResult, PlayerMatchStats

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from zdefense.core.config.manager import ConfigManager
    from zdefense.core.database.service import DatabaseService
    from zdefense.core.event.bus import EventBus
    from zdefense.modules.economy.ledger import CurrencyLedger


class MatchRewardService(BaseService):
    """
    Match reward orchestrator.

    Dependencies
    ------------
    - DatabaseService: one transaction per player, or per match
    - CurrencyLedger: match_reward credits
    - ConfigManager: progression.base_xp_per_level
    - EventBus: reward, level-up and currency events
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        ledger: CurrencyLedger,
    ) -> None:
        super().__init__(database, config_manager, event_bus, logger)
        self._ledger = ledger
        self._progression_repo = ProgressionRepository(
            get_logger(f"{__name__}.ProgressionRepository")
        )

    @property
    def base_xp_per_level(self) -> int:
        return self._config.get_int(
            "progression.base_xp_per_level", DEFAULT_BASE_XP_PER_LEVEL
        )

    # ========================================================================
    # Public API
    # ========================================================================

    async def award_match_rewards(
        self,
        player_id: int,
        kills: int,
        deaths: int,
        waves_survived: int,
        scrap_earned: int,
        currency_earned: int,
        match_id: Optional[str] = None,
    ) -> MatchRewardResult:
        """
        Apply one player's match rewards in their own transaction.

        Raises:
            InvalidStatsError: Any statistic is negative
            StorageFailureError: The database rejected the unit of work
        """
        stats = PlayerMatchStats(
            player_id=player_id,
            kills=kills,
            deaths=deaths,
            waves_survived=waves_survived,
            scrap_earned=scrap_earned,
            currency_earned=currency_earned,
        )
        stats.validate()
        base_xp = self.base_xp_per_level

        self.log_operation(
            "award_match_rewards",
            player_id=player_id,
            match_id=match_id,
            kills=kills,
            waves_survived=waves_survived,
        )

        with self.storage_errors("award_match_rewards", player_id=player_id):
            async with self.db.get_transaction() as session:
                result = await self._apply_rewards(session, stats, base_xp, match_id)

        await self._publish(result, match_id)
        return result

    async def award_match_rewards_for_match(
        self, match_id: str, results: Sequence[PlayerMatchStats]
    ) -> List[MatchRewardResult]:
        """
        Apply every player's rewards for one match, all or nothing.

        Raises:
            InvalidStatsError: A statistic is negative, or a player appears
                twice; nothing is written
            InsufficientCurrencyError / StorageFailureError: propagated after
                the whole match has been rolled back
        """
        if not match_id:
            raise InvalidStatsError("match_id", "must not be empty")

        seen = set()
        for stats in results:
            stats.validate()
            if stats.player_id in seen:
                raise InvalidStatsError(
                    "player_id", f"player {stats.player_id} appears twice in match"
                )
            seen.add(stats.player_id)

        base_xp = self.base_xp_per_level
        self.log_operation(
            "award_match_rewards_for_match",
            match_id=match_id,
            player_count=len(results),
        )

        rewards: List[MatchRewardResult] = []
        with log_context(match_id=match_id), self.storage_errors(
            "award_match_rewards_for_match", match_id=match_id
        ):
            async with self.db.get_transaction() as session:
                for stats in results:
                    rewards.append(
                        await self._apply_rewards(session, stats, base_xp, match_id)
                    )

        self.log.info(
            "Match rewards committed",
            extra={"match_id": match_id, "player_count": len(rewards)},
        )

        for result in rewards:
            await self._publish(result, match_id)
        return rewards

    # ========================================================================
    # Unit of work
    # ========================================================================

    def _level_follow_up(self, player_id: int, new_level: int) -> FollowUp:
        async def record_level(session: AsyncSession) -> bool:
            return await self._progression_repo.raise_level(
                session, player_id, new_level
            )

        return FollowUp(
            name="record_level",
            action=record_level,
            context={"player_id": player_id, "new_level": new_level},
        )

    async def _apply_rewards(
        self,
        session: AsyncSession,
        stats: PlayerMatchStats,
        base_xp: int,
        match_id: Optional[str],
    ) -> MatchRewardResult:
        player_id = stats.player_id
        xp_gained = compute_match_xp(
            stats.kills, stats.waves_survived, stats.scrap_earned
        )

        await self._progression_repo.ensure_row(session, player_id)
        await self._progression_repo.increment_match_stats(
            session,
            player_id,
            kills=stats.kills,
            deaths=stats.deaths,
            waves_survived=stats.waves_survived,
            scrap_earned=stats.scrap_earned,
            currency_earned=stats.currency_earned,
        )

        change = await self._progression_repo.add_experience(
            session, player_id, xp_gained
        )
        assert change is not None

        old_level = change.stored_level
        new_level = level_from_xp(change.new_experience, base_xp)
        level_recorded = new_level <= old_level
        if new_level > old_level:
            outcomes = await run_follow_ups(
                session, [self._level_follow_up(player_id, new_level)], self.log
            )
            level_recorded = outcomes[0].succeeded

        currency_entry = None
        if stats.currency_earned > 0:
            currency_entry = await self._ledger.apply_currency_delta(
                session,
                player_id,
                stats.currency_earned,
                CurrencyTransactionKind.MATCH_REWARD,
                reference_id=match_id,
            )

        return MatchRewardResult(
            player_id=player_id,
            xp_gained=xp_gained,
            old_experience=change.old_experience,
            new_experience=change.new_experience,
            old_level=old_level,
            new_level=max(old_level, new_level),
            level_recorded=level_recorded,
            currency_entry=currency_entry,
        )

    async def _publish(self, result: MatchRewardResult, match_id: Optional[str]) -> None:
        self.log.info(
            "Match rewards applied",
            extra={
                "player_id": result.player_id,
                "match_id": match_id,
                "xp_gained": result.xp_gained,
                "new_experience": result.new_experience,
                "new_level": result.new_level,
                "leveled_up": result.leveled_up,
            },
        )

        await self.emit_event(
            events.MATCH_REWARDED, {"match_id": match_id, **result.to_dict()}
        )
        if result.leveled_up:
            await self.emit_event(
                events.LEVEL_UP,
                {
                    "player_id": result.player_id,
                    "old_level": result.old_level,
                    "new_level": result.new_level,
                },
            )
        if result.currency_entry is not None:
            await self.emit_event(
                events.CURRENCY_CHANGED, result.currency_entry.to_event()
            )
