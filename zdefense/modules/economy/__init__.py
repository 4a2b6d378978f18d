"""Economy module: the currency ledger."""

from .ledger import (
    CurrencyLedger,
    CurrencyLedgerService,
    CurrencyTransactionRepository,
    LedgerAudit,
    LedgerEntry,
    TransactionView,
    build_currency_ledger,
)

__all__ = [
    "CurrencyLedger",
    "CurrencyLedgerService",
    "CurrencyTransactionRepository",
    "LedgerAudit",
    "LedgerEntry",
    "TransactionView",
    "build_currency_ledger",
]
