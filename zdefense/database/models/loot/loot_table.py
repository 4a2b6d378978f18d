"""
LootTable / LootTableEntry: weighted cosmetic drop configuration.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from zdefense.core.database.base import Base, IdMixin, SurrogateKey, utcnow


class LootTable(Base, IdMixin):
    """
    A drop source, gated by `drop_chance`.

    Schema-only:
    - name / description
    - drop_chance (probability in [0, 1])
    - is_active
    """

    __tablename__ = "loot_tables"
    __table_args__ = (
        CheckConstraint(
            "drop_chance >= 0 AND drop_chance <= 1", name="drop_chance_range"
        ),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    drop_chance: Mapped[float] = mapped_column(Float, nullable=False)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
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
            "drop_chance": self.drop_chance,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class LootTableEntry(Base, IdMixin):
    """
    One weighted outcome of a loot table.

    `weight` is relative to the other entries of the same table. The quantity
    range is carried for display; ownership itself is binary.
    """

    __tablename__ = "loot_table_entries"
    __table_args__ = (
        CheckConstraint("weight >= 1", name="weight_positive"),
        CheckConstraint("min_quantity >= 1", name="min_quantity_positive"),
        CheckConstraint("max_quantity >= min_quantity", name="quantity_range"),
    )

    loot_table_id: Mapped[int] = mapped_column(
        SurrogateKey,
        ForeignKey("loot_tables.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    cosmetic_id: Mapped[int] = mapped_column(
        SurrogateKey,
        ForeignKey("cosmetic_items.id", ondelete="RESTRICT"),
        nullable=False,
    )

    weight: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    min_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    max_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "loot_table_id": self.loot_table_id,
            "cosmetic_id": self.cosmetic_id,
            "weight": self.weight,
            "min_quantity": self.min_quantity,
            "max_quantity": self.max_quantity,
        }
