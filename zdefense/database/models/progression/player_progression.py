"""
PlayerProgression: durable per-player economic state.
Pure schema only.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, Integer
from sqlalchemy.orm import Mapped, mapped_column

from zdefense.core.database.base import Base, TimestampMixin


class PlayerProgression(Base, TimestampMixin):
    """
    One row per player, created lazily on first access.

    Schema-only:
    - level / experience (cumulative, reset only by prestige)
    - prestige_tier
    - currency_balance (never negative)
    - lifetime counters
    """

    __tablename__ = "player_progression"
    __table_args__ = (
        CheckConstraint("level >= 1", name="level_positive"),
        CheckConstraint("experience >= 0", name="experience_non_negative"),
        CheckConstraint("prestige_tier >= 0", name="prestige_non_negative"),
        CheckConstraint("currency_balance >= 0", name="balance_non_negative"),
    )

    player_id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=False,
        doc="Account id issued by the authentication service",
    )

    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    experience: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    prestige_tier: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency_balance: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    # Lifetime counters
    total_matches_played: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    total_kills: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_deaths: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_waves_survived: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    total_scrap_earned: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    total_currency_earned: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
