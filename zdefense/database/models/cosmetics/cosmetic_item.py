"""
CosmeticItem: admin-managed cosmetic catalog.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from zdefense.core.database.base import Base, IdMixin, utcnow
from ..enums import CosmeticRarity, CosmeticSlot, enum_column


class CosmeticItem(Base, IdMixin):
    """
    Catalog entry for an ownable cosmetic.

    Schema-only:
    - slot (loadout slot it occupies)
    - rarity
    - unlock_level (player level, or prestige tier for prestige-only items)
    - currency_cost (0 means not purchasable)
    - is_prestige_only
    """

    __tablename__ = "cosmetic_items"
    __table_args__ = (
        CheckConstraint("unlock_level >= 0", name="unlock_level_non_negative"),
        CheckConstraint("currency_cost >= 0", name="cost_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    slot: Mapped[CosmeticSlot] = mapped_column(
        enum_column(CosmeticSlot),
        nullable=False,
        index=True,
    )

    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    rarity: Mapped[CosmeticRarity] = mapped_column(
        enum_column(CosmeticRarity),
        nullable=False,
        default=CosmeticRarity.COMMON,
    )

    unlock_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    currency_cost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_prestige_only: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "slot": self.slot.value,
            "category": self.category,
            "rarity": self.rarity.value,
            "unlock_level": self.unlock_level,
            "currency_cost": self.currency_cost,
            "is_prestige_only": self.is_prestige_only,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
