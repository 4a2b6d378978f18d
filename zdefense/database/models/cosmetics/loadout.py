"""
Loadout / LoadoutSlotAssignment: named sets of equipped cosmetics.
Pure schema only.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from zdefense.core.database.base import Base, IdMixin, SurrogateKey, TimestampMixin
from ..enums import CosmeticSlot, enum_column


class Loadout(Base, IdMixin, TimestampMixin):
    """
    A player's named loadout.

    At most one loadout per player is active; the partial unique index
    enforces it on both supported backends.
    """

    __tablename__ = "loadouts"
    __table_args__ = (
        UniqueConstraint("player_id", "name", name="uq_loadouts_player_name"),
        Index(
            "uq_loadouts_one_active_per_player",
            "player_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    player_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class LoadoutSlotAssignment(Base):
    """
    (loadout, slot) → cosmetic. The primary key keeps slot occupancy at 0 or 1.
    """

    __tablename__ = "loadout_slot_assignments"

    loadout_id: Mapped[int] = mapped_column(
        SurrogateKey,
        ForeignKey("loadouts.id", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )

    slot: Mapped[CosmeticSlot] = mapped_column(
        enum_column(CosmeticSlot),
        primary_key=True,
    )

    cosmetic_id: Mapped[int] = mapped_column(
        SurrogateKey,
        ForeignKey("cosmetic_items.id", ondelete="RESTRICT"),
        nullable=False,
    )
