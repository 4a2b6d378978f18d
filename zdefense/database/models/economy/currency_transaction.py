"""
CurrencyTransaction: append-only currency ledger (immutable).
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from zdefense.core.database.base import Base, IdMixin, utcnow
from ..enums import CurrencyTransactionKind, enum_column


class CurrencyTransaction(Base, IdMixin):
    """
    One row per balance mutation. Never updated or deleted.

    Schema-only:
    - player_id
    - amount (signed delta)
    - balance_after (balance snapshot after the delta was applied)
    - kind
    - reference_id (e.g. cosmetic id for purchases, match id for rewards)
    - created_at
    """

    __tablename__ = "currency_transactions"
    __table_args__ = (
        Index("ix_currency_transactions_player_time", "player_id", "created_at"),
        CheckConstraint("amount <> 0", name="amount_non_zero"),
        CheckConstraint("balance_after >= 0", name="balance_after_non_negative"),
    )

    player_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("player_progression.player_id", ondelete="CASCADE"),
        nullable=False,
    )

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)

    kind: Mapped[CurrencyTransactionKind] = mapped_column(
        enum_column(CurrencyTransactionKind),
        nullable=False,
        index=True,
    )

    reference_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
