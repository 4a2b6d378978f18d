"""
PlayerCosmetic: binary cosmetic ownership.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zdefense.core.database.base import Base, SurrogateKey, utcnow
from ..enums import UnlockMethod, enum_column
from .cosmetic_item import CosmeticItem


class PlayerCosmetic(Base):
    """
    Ownership of one cosmetic by one player.

    The composite primary key makes ownership binary: a second grant of the
    same pair inserts nothing. Rows are never deleted.
    """

    __tablename__ = "player_cosmetics"
    __table_args__ = (
        Index("ix_player_cosmetics_player_unlocked", "player_id", "unlocked_at"),
    )

    player_id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False
    )

    cosmetic_id: Mapped[int] = mapped_column(
        SurrogateKey,
        ForeignKey("cosmetic_items.id", ondelete="RESTRICT"),
        primary_key=True,
        autoincrement=False,
    )

    unlock_method: Mapped[UnlockMethod] = mapped_column(
        enum_column(UnlockMethod),
        nullable=False,
    )

    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    cosmetic: Mapped[CosmeticItem] = relationship(lazy="selectin")
