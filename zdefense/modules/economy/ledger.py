"""
Currency Ledger - atomic balance mutation plus append-only transaction log.

Purpose
-------
Every credit or debit of a player's currency goes through
`CurrencyLedger.apply_currency_delta()`, which on the caller's unit of work:

1. Applies the delta with one conditional atomic update
   (`balance = balance + :amount WHERE balance + :amount >= 0 RETURNING`)
2. Appends one `CurrencyTransaction` carrying the returned balance

Both effects live in the caller's transaction, so they commit or roll back
together. A debit larger than the balance updates nothing and raises
`InsufficientCurrencyError`.

Responsibilities
----------------
- CurrencyLedger: session-scoped collaborator used by other services
- CurrencyLedgerService: stand-alone operations (admin grants/refunds,
  balance and history reads, ledger verification), each its own transaction

Invariants
----------
- Balance never goes negative
- Replaying a player's transactions ordered by (created_at, id) reproduces
  every intermediate balance and the stored balance
- Zero-amount deltas write nothing
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from zdefense.core.event import events
from zdefense.core.logging.logger import get_logger
from zdefense.database.models import CurrencyTransaction, CurrencyTransactionKind
from zdefense.modules.progression.repository import ProgressionRepository
from zdefense.modules.shared.base_repository import BaseRepository
from zdefense.modules.shared.base_service import BaseService
from zdefense.modules.shared.exceptions import (
    InsufficientCurrencyError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from zdefense.core.config.manager import ConfigManager
    from zdefense.core.database.service import DatabaseService
    from zdefense.core.event.bus import EventBus


# ============================================================================
# Result Types
# ============================================================================


@dataclass(frozen=True)
class LedgerEntry:
    """One applied balance change, as written to the ledger."""

    transaction_id: int
    player_id: int
    amount: int
    balance_after: int
    kind: CurrencyTransactionKind
    reference_id: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "player_id": self.player_id,
            "amount": self.amount,
            "balance_after": self.balance_after,
            "kind": self.kind.value,
            "reference_id": self.reference_id,
        }

    def to_event(self) -> Dict[str, Any]:
        return self.to_dict()


@dataclass(frozen=True)
class LedgerAudit:
    """Outcome of replaying a player's ledger against the stored balance."""

    player_id: int
    stored_balance: int
    replayed_balance: int
    transaction_count: int
    first_mismatch_transaction_id: Optional[int]

    @property
    def consistent(self) -> bool:
        return (
            self.stored_balance == self.replayed_balance
            and self.first_mismatch_transaction_id is None
        )


# ============================================================================
# Repository
# ============================================================================


class CurrencyTransactionRepository(BaseRepository[CurrencyTransaction]):
    """Append-only access to the currency ledger."""

    def __init__(self, logger: Logger) -> None:
        super().__init__(CurrencyTransaction, logger)

    async def history(
        self, session: AsyncSession, player_id: int, limit: Optional[int] = None
    ) -> List[CurrencyTransaction]:
        """Newest first."""
        return await self.find_many_where(
            session,
            CurrencyTransaction.player_id == player_id,
            order_by=[
                CurrencyTransaction.created_at.desc(),
                CurrencyTransaction.id.desc(),
            ],
            limit=limit,
        )

    async def replay_order(
        self, session: AsyncSession, player_id: int
    ) -> List[CurrencyTransaction]:
        """Oldest first, the order balances were produced in."""
        return await self.find_many_where(
            session,
            CurrencyTransaction.player_id == player_id,
            order_by=[CurrencyTransaction.created_at, CurrencyTransaction.id],
        )


# ============================================================================
# CurrencyLedger (session-scoped collaborator)
# ============================================================================


class CurrencyLedger:
    """
    Applies currency deltas inside a caller-owned unit of work.

    Stateless; one instance is shared by every service that moves currency.
    """

    def __init__(
        self,
        progression_repo: ProgressionRepository,
        transaction_repo: CurrencyTransactionRepository,
        logger: Logger,
    ) -> None:
        self._progression = progression_repo
        self._transactions = transaction_repo
        self.log = logger

    async def get_balance(self, session: AsyncSession, player_id: int) -> int:
        return await self._progression.get_balance(session, player_id)

    async def apply_currency_delta(
        self,
        session: AsyncSession,
        player_id: int,
        amount: int,
        kind: Union[CurrencyTransactionKind, str],
        reference_id: Optional[str] = None,
    ) -> Optional[LedgerEntry]:
        """
        Apply a signed delta and log it. Returns None for a zero amount.

        Raises:
            InsufficientCurrencyError: The debit exceeds the current balance;
                nothing was written.
        """
        if amount == 0:
            return None

        kind = CurrencyTransactionKind(kind)
        await self._progression.ensure_row(session, player_id)

        new_balance = await self._progression.apply_balance_delta(
            session, player_id, amount
        )
        if new_balance is None:
            current = await self._progression.get_balance(session, player_id)
            self.log.info(
                "Currency debit rejected: insufficient balance",
                extra={
                    "player_id": player_id,
                    "amount": amount,
                    "balance": current,
                    "kind": kind.value,
                },
            )
            raise InsufficientCurrencyError(player_id, -amount, current)

        transaction = await self._transactions.add(
            session,
            CurrencyTransaction(
                player_id=player_id,
                amount=amount,
                balance_after=new_balance,
                kind=kind,
                reference_id=reference_id,
            ),
        )

        self.log.info(
            "Currency delta applied",
            extra={
                "player_id": player_id,
                "amount": amount,
                "balance_after": new_balance,
                "kind": kind.value,
                "reference_id": reference_id,
                "transaction_id": transaction.id,
            },
        )

        return LedgerEntry(
            transaction_id=transaction.id,
            player_id=player_id,
            amount=amount,
            balance_after=new_balance,
            kind=kind,
            reference_id=reference_id,
        )


def build_currency_ledger() -> CurrencyLedger:
    """Construct the shared ledger with its repositories."""
    return CurrencyLedger(
        ProgressionRepository(get_logger(f"{__name__}.ProgressionRepository")),
        CurrencyTransactionRepository(
            get_logger(f"{__name__}.CurrencyTransactionRepository")
        ),
        get_logger(f"{__name__}.CurrencyLedger"),
    )


# ============================================================================
# CurrencyLedgerService
# ============================================================================


@dataclass(frozen=True)
class TransactionView:
    transaction_id: int
    amount: int
    balance_after: int
    kind: CurrencyTransactionKind
    reference_id: Optional[str]
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "amount": self.amount,
            "balance_after": self.balance_after,
            "kind": self.kind.value,
            "reference_id": self.reference_id,
            "created_at": self.created_at.isoformat(),
        }


class CurrencyLedgerService(BaseService):
    """
    Stand-alone currency operations.

    Dependencies
    ------------
    - DatabaseService: one transaction per mutating call
    - CurrencyLedger: the only writer of balances and ledger rows
    - EventBus: `economy.currency_changed` after commit
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
        self.ledger = ledger
        self._progression_repo = ProgressionRepository(
            get_logger(f"{__name__}.ProgressionRepository")
        )
        self._transaction_repo = CurrencyTransactionRepository(
            get_logger(f"{__name__}.CurrencyTransactionRepository")
        )

    async def grant_currency(
        self,
        player_id: int,
        amount: int,
        kind: Union[CurrencyTransactionKind, str] = CurrencyTransactionKind.ADMIN_GRANT,
        reference_id: Optional[str] = None,
    ) -> Optional[LedgerEntry]:
        """
        Credit (positive) or debit (negative) a player's balance.

        Used for admin grants, refunds and corrections. Returns None for a
        zero amount.

        Raises:
            ValidationError: amount is not an int, or kind is unknown
            InsufficientCurrencyError: debit exceeds the balance
        """
        self.validate_positive_int(player_id, "player_id")
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise ValidationError("amount", f"amount must be an integer, got {amount!r}")
        try:
            kind = CurrencyTransactionKind(kind)
        except ValueError:
            raise ValidationError("kind", f"unknown transaction kind {kind!r}") from None

        self.log_operation(
            "grant_currency",
            player_id=player_id,
            amount=amount,
            kind=kind.value,
        )

        with self.storage_errors("grant_currency", player_id=player_id):
            async with self.db.get_transaction() as session:
                entry = await self.ledger.apply_currency_delta(
                    session, player_id, amount, kind, reference_id
                )

        if entry is not None:
            await self.emit_event(events.CURRENCY_CHANGED, entry.to_event())
        return entry

    async def get_balance(self, player_id: int) -> int:
        with self.storage_errors("get_balance", player_id=player_id):
            async with self.db.get_session() as session:
                return await self._progression_repo.get_balance(session, player_id)

    async def get_transaction_history(
        self, player_id: int, limit: int = 50
    ) -> List[TransactionView]:
        """Most recent transactions first."""
        self.validate_range(limit, "limit", 1, 500)

        with self.storage_errors("get_transaction_history", player_id=player_id):
            async with self.db.get_session() as session:
                rows = await self._transaction_repo.history(session, player_id, limit)

        return [
            TransactionView(
                transaction_id=row.id,
                amount=row.amount,
                balance_after=row.balance_after,
                kind=row.kind,
                reference_id=row.reference_id,
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def verify_ledger(self, player_id: int) -> LedgerAudit:
        """
        Replay the player's ledger from zero and compare with the stored balance.

        Every row's `balance_after` must equal the running sum at that row.
        """
        with self.storage_errors("verify_ledger", player_id=player_id):
            async with self.db.get_session() as session:
                rows = await self._transaction_repo.replay_order(session, player_id)
                stored = await self._progression_repo.get_balance(session, player_id)

        running = 0
        first_mismatch: Optional[int] = None
        for row in rows:
            running += row.amount
            if first_mismatch is None and row.balance_after != running:
                first_mismatch = row.id

        audit = LedgerAudit(
            player_id=player_id,
            stored_balance=stored,
            replayed_balance=running,
            transaction_count=len(rows),
            first_mismatch_transaction_id=first_mismatch,
        )

        if not audit.consistent:
            self.log.warning(
                "Ledger replay does not match stored balance",
                extra={
                    "player_id": player_id,
                    "stored_balance": stored,
                    "replayed_balance": running,
                    "first_mismatch_transaction_id": first_mismatch,
                },
            )
        return audit
