"""
Integration tests for the currency ledger.

Every balance change writes exactly one transaction, debits never overdraw,
and replaying the ledger reproduces the stored balance.
"""

import asyncio

import pytest

from zdefense.core.event import events
from zdefense.database.models import CurrencyTransactionKind
from zdefense.modules.shared.exceptions import InsufficientCurrencyError, ValidationError


@pytest.mark.integration
@pytest.mark.database
class TestGrantCurrency:
    """Test admin grants and corrections."""

    async def test_credit_then_debit(self, services):
        credit = await services.currency.grant_currency(1, 500)
        debit = await services.currency.grant_currency(
            1, -120, CurrencyTransactionKind.ADMIN_GRANT, reference_id="correction-1"
        )

        assert credit.balance_after == 500
        assert debit.amount == -120
        assert debit.balance_after == 380
        assert debit.reference_id == "correction-1"
        assert await services.currency.get_balance(1) == 380

    async def test_overdraft_rejected(self, services):
        """A debit larger than the balance writes nothing."""
        await services.currency.grant_currency(2, 100)

        with pytest.raises(InsufficientCurrencyError) as exc_info:
            await services.currency.grant_currency(2, -150)

        assert exc_info.value.required == 150
        assert exc_info.value.current == 100
        assert await services.currency.get_balance(2) == 100
        history = await services.currency.get_transaction_history(2)
        assert len(history) == 1

    async def test_zero_amount_writes_nothing(self, services, recorded_events):
        assert await services.currency.grant_currency(3, 0) is None

        assert await services.currency.get_transaction_history(3) == []
        assert recorded_events.names() == []

    async def test_string_kind_accepted(self, services):
        entry = await services.currency.grant_currency(4, 10, "refund")

        assert entry.kind is CurrencyTransactionKind.REFUND

    async def test_unknown_kind_rejected(self, services):
        with pytest.raises(ValidationError):
            await services.currency.grant_currency(4, 10, "lottery")

    async def test_event_payload(self, services, recorded_events):
        entry = await services.currency.grant_currency(5, 40)

        payloads = recorded_events.payloads(events.CURRENCY_CHANGED)
        assert payloads == [entry.to_event()]
        assert payloads[0]["kind"] == "admin_grant"

    async def test_unknown_player_has_zero_balance(self, services):
        assert await services.currency.get_balance(999) == 0


@pytest.mark.integration
@pytest.mark.database
class TestLedgerHistory:
    async def test_newest_first(self, services):
        for amount in (10, 20, 30):
            await services.currency.grant_currency(6, amount)

        history = await services.currency.get_transaction_history(6)

        assert [row.amount for row in history] == [30, 20, 10]
        assert [row.balance_after for row in history] == [60, 30, 10]

    async def test_limit(self, services):
        for amount in (1, 2, 3):
            await services.currency.grant_currency(7, amount)

        history = await services.currency.get_transaction_history(7, limit=2)

        assert [row.amount for row in history] == [3, 2]

    async def test_limit_out_of_range(self, services):
        with pytest.raises(ValidationError):
            await services.currency.get_transaction_history(7, limit=0)


@pytest.mark.integration
@pytest.mark.database
class TestVerifyLedger:
    async def test_replay_matches_balance(self, services):
        """Credits, debits and match rewards all replay to the stored balance."""
        await services.currency.grant_currency(8, 300)
        await services.match_rewards.award_match_rewards(
            8, kills=1, deaths=0, waves_survived=1, scrap_earned=0, currency_earned=45
        )
        await services.currency.grant_currency(8, -200)

        audit = await services.currency.verify_ledger(8)

        assert audit.consistent is True
        assert audit.stored_balance == 145
        assert audit.replayed_balance == 145
        assert audit.transaction_count == 3

    async def test_empty_ledger(self, services):
        audit = await services.currency.verify_ledger(9)

        assert audit.consistent is True
        assert audit.transaction_count == 0


@pytest.mark.integration
@pytest.mark.database
class TestConcurrentWriters:
    """Concurrent balance changes for one player never lose an update."""

    async def test_concurrent_credits(self, services):
        await asyncio.gather(
            *(services.currency.grant_currency(10, 10) for _ in range(20))
        )

        assert await services.currency.get_balance(10) == 200
        audit = await services.currency.verify_ledger(10)
        assert audit.consistent is True
        assert audit.transaction_count == 20

    async def test_concurrent_debits_never_overdraw(self, services):
        """Five debits of 30 against a balance of 100: only three fit."""
        await services.currency.grant_currency(11, 100)

        results = await asyncio.gather(
            *(services.currency.grant_currency(11, -30) for _ in range(5)),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 2
        assert all(isinstance(r, InsufficientCurrencyError) for r in failures)
        assert await services.currency.get_balance(11) == 10
        assert (await services.currency.verify_ledger(11)).consistent is True
