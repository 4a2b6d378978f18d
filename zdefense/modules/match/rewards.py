"""Match reward inputs and results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from zdefense.modules.economy.ledger import LedgerEntry
from zdefense.modules.shared.exceptions import InvalidStatsError

STAT_FIELDS = ("kills", "deaths", "waves_survived", "scrap_earned", "currency_earned")


@dataclass(frozen=True)
class PlayerMatchStats:
    """One player's statistics for a completed match."""

    player_id: int
    kills: int = 0
    deaths: int = 0
    waves_survived: int = 0
    scrap_earned: int = 0
    currency_earned: int = 0

    def validate(self) -> None:
        """
        Raises:
            InvalidStatsError: player_id is not positive, or a statistic is
                negative or not an integer
        """
        if (
            not isinstance(self.player_id, int)
            or isinstance(self.player_id, bool)
            or self.player_id <= 0
        ):
            raise InvalidStatsError(
                "player_id", f"must be a positive integer, got {self.player_id!r}"
            )

        for stat in STAT_FIELDS:
            value = getattr(self, stat)
            if not isinstance(value, int) or isinstance(value, bool):
                raise InvalidStatsError(stat, f"must be an integer, got {value!r}")
            if value < 0:
                raise InvalidStatsError(stat, f"must be non-negative, got {value}")


@dataclass(frozen=True)
class MatchRewardResult:
    player_id: int
    xp_gained: int
    old_experience: int
    new_experience: int
    old_level: int
    new_level: int
    level_recorded: bool
    currency_entry: Optional[LedgerEntry] = None

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "xp_gained": self.xp_gained,
            "old_experience": self.old_experience,
            "new_experience": self.new_experience,
            "old_level": self.old_level,
            "new_level": self.new_level,
            "leveled_up": self.leveled_up,
            "level_recorded": self.level_recorded,
            "currency": self.currency_entry.to_dict() if self.currency_entry else None,
        }
