"""
Economy domain ORM models.

Exports:
- CurrencyTransaction
"""

from .currency_transaction import CurrencyTransaction

__all__ = ["CurrencyTransaction"]
