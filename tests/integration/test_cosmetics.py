"""
Integration tests for CosmeticService.

Covers purchases (debit and grant in one unit of work), equipping into the
active loadout, and loadout management.
"""

import asyncio

import pytest

from zdefense.core.event import events
from zdefense.database.models import CosmeticSlot, CurrencyTransactionKind, UnlockMethod
from zdefense.modules.shared.exceptions import (
    CosmeticAlreadyOwnedError,
    CosmeticNotFoundError,
    CosmeticNotOwnedError,
    InsufficientCurrencyError,
    LoadoutNotFoundError,
    ValidationError,
)


# ============================================================================
# PURCHASE TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestPurchaseCosmetic:
    """Test buying cosmetics with currency."""

    async def test_purchase_debits_and_grants(self, services, make_cosmetic):
        """200 balance, 150 cost: 50 left, one -150 transaction, then owned."""
        helmet = await make_cosmetic(currency_cost=150)
        await services.currency.grant_currency(1, 200)

        result = await services.cosmetics.purchase_cosmetic(1, helmet.id)

        assert result.cost == 150
        assert result.balance_after == 50
        assert await services.currency.get_balance(1) == 50

        history = await services.currency.get_transaction_history(1)
        assert history[0].amount == -150
        assert history[0].balance_after == 50
        assert history[0].kind is CurrencyTransactionKind.PURCHASE
        assert history[0].reference_id == str(helmet.id)

        owned = await services.cosmetics.get_owned_cosmetics(1)
        assert [item.cosmetic["id"] for item in owned] == [helmet.id]
        assert owned[0].unlock_method is UnlockMethod.PURCHASE

    async def test_second_purchase_rejected(self, services, make_cosmetic):
        helmet = await make_cosmetic(currency_cost=150)
        await services.currency.grant_currency(2, 400)
        await services.cosmetics.purchase_cosmetic(2, helmet.id)

        with pytest.raises(CosmeticAlreadyOwnedError):
            await services.cosmetics.purchase_cosmetic(2, helmet.id)

        assert await services.currency.get_balance(2) == 250

    async def test_insufficient_currency(self, services, make_cosmetic):
        """Nothing changes when the balance is short."""
        cape = await make_cosmetic(currency_cost=300)
        await services.currency.grant_currency(3, 100)

        with pytest.raises(InsufficientCurrencyError) as exc_info:
            await services.cosmetics.purchase_cosmetic(3, cape.id)

        assert exc_info.value.required == 300
        assert exc_info.value.current == 100
        assert await services.currency.get_balance(3) == 100
        assert await services.cosmetics.get_owned_cosmetics(3) == []

    async def test_unknown_cosmetic(self, services):
        with pytest.raises(CosmeticNotFoundError):
            await services.cosmetics.purchase_cosmetic(4, 9999)

    async def test_free_cosmetic_writes_no_transaction(self, services, make_cosmetic):
        badge = await make_cosmetic(slot=CosmeticSlot.BADGE, currency_cost=0)

        result = await services.cosmetics.purchase_cosmetic(5, badge.id)

        assert result.transaction_id is None
        assert await services.currency.get_transaction_history(5) == []

    async def test_events(self, services, make_cosmetic, recorded_events):
        helmet = await make_cosmetic(currency_cost=10)
        await services.currency.grant_currency(6, 10)
        recorded_events.published.clear()

        await services.cosmetics.purchase_cosmetic(6, helmet.id)

        assert recorded_events.names() == [
            events.CURRENCY_CHANGED,
            events.COSMETIC_GRANTED,
        ]
        granted = recorded_events.payloads(events.COSMETIC_GRANTED)[0]
        assert granted == {
            "player_id": 6,
            "cosmetic_id": helmet.id,
            "unlock_method": "purchase",
        }

    async def test_grant_conflict_rolls_back_debit(self, services, make_cosmetic, mocker):
        """A grant that loses to an existing ownership row undoes the debit."""
        helmet = await make_cosmetic(currency_cost=100)
        await services.currency.grant_currency(7, 300)
        await services.cosmetics.purchase_cosmetic(7, helmet.id)
        mocker.patch.object(services.cosmetics._ownership_repo, "owns", return_value=False)

        with pytest.raises(CosmeticAlreadyOwnedError):
            await services.cosmetics.purchase_cosmetic(7, helmet.id)

        assert await services.currency.get_balance(7) == 200
        assert len(await services.currency.get_transaction_history(7)) == 2

    async def test_concurrent_purchases_of_one_cosmetic(self, services, make_cosmetic):
        """Exactly one of several simultaneous purchases wins; one debit applied."""
        helmet = await make_cosmetic(currency_cost=100)
        await services.currency.grant_currency(8, 1000)

        results = await asyncio.gather(
            *(services.cosmetics.purchase_cosmetic(8, helmet.id) for _ in range(5)),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 4
        assert all(isinstance(r, CosmeticAlreadyOwnedError) for r in failures)
        assert await services.currency.get_balance(8) == 900
        assert len(await services.currency.get_transaction_history(8)) == 2
        owned = await services.cosmetics.get_owned_cosmetics(8)
        assert [item.cosmetic["id"] for item in owned] == [helmet.id]


# ============================================================================
# EQUIP TESTS
# ============================================================================


async def _own(services, player_id, cosmetic):
    await services.cosmetics.purchase_cosmetic(player_id, cosmetic.id)


@pytest.mark.integration
@pytest.mark.database
class TestEquipCosmetic:
    """Test slot assignment in the active loadout."""

    async def test_first_equip_creates_default_loadout(self, services, make_cosmetic):
        skin = await make_cosmetic()
        await _own(services, 10, skin)

        await services.cosmetics.equip_cosmetic(10, skin.id)

        loadout = await services.cosmetics.get_active_loadout(10)
        assert loadout is not None
        assert loadout.name == "Default"
        assert loadout.slots == {CosmeticSlot.CHARACTER_SKIN: skin.id}

    async def test_equip_replaces_slot(self, services, make_cosmetic):
        """At most one cosmetic per slot."""
        first = await make_cosmetic()
        second = await make_cosmetic()
        emote = await make_cosmetic(slot=CosmeticSlot.EMOTE)
        for cosmetic in (first, second, emote):
            await _own(services, 11, cosmetic)

        await services.cosmetics.equip_cosmetic(11, first.id)
        await services.cosmetics.equip_cosmetic(11, emote.id)
        await services.cosmetics.equip_cosmetic(11, second.id)

        loadout = await services.cosmetics.get_active_loadout(11)
        assert loadout.slots == {
            CosmeticSlot.CHARACTER_SKIN: second.id,
            CosmeticSlot.EMOTE: emote.id,
        }

    async def test_not_owned(self, services, make_cosmetic):
        skin = await make_cosmetic()

        with pytest.raises(CosmeticNotOwnedError):
            await services.cosmetics.equip_cosmetic(12, skin.id)

        assert await services.cosmetics.get_active_loadout(12) is None

    async def test_unknown_cosmetic(self, services):
        with pytest.raises(CosmeticNotFoundError):
            await services.cosmetics.equip_cosmetic(12, 9999)

    async def test_unequip(self, services, make_cosmetic):
        skin = await make_cosmetic()
        await _own(services, 13, skin)
        await services.cosmetics.equip_cosmetic(13, skin.id)

        assert await services.cosmetics.unequip_slot(13, "character_skin") is True
        assert await services.cosmetics.unequip_slot(13, CosmeticSlot.CHARACTER_SKIN) is False

        loadout = await services.cosmetics.get_active_loadout(13)
        assert loadout.slots == {}

    async def test_unequip_without_loadout(self, services):
        assert await services.cosmetics.unequip_slot(14, CosmeticSlot.TITLE) is False

    async def test_unequip_unknown_slot(self, services):
        with pytest.raises(ValidationError):
            await services.cosmetics.unequip_slot(14, "hat")

    async def test_equip_event(self, services, make_cosmetic, recorded_events):
        skin = await make_cosmetic()
        await _own(services, 15, skin)

        await services.cosmetics.equip_cosmetic(15, skin.id)

        payload = recorded_events.payloads(events.COSMETIC_EQUIPPED)[0]
        assert payload["cosmetic_id"] == skin.id
        assert payload["slot"] == "character_skin"

    async def test_assign_slot_overwrites_occupant(self, services, database, make_cosmetic):
        first = await make_cosmetic()
        second = await make_cosmetic()
        repo = services.cosmetics._loadout_repo

        async with database.get_transaction() as session:
            loadout = await repo.ensure_active(session, 16, "Default")
            assert await repo.assign_slot(
                session, loadout.id, CosmeticSlot.CHARACTER_SKIN, first.id
            ) is None
            assert await repo.assign_slot(
                session, loadout.id, CosmeticSlot.CHARACTER_SKIN, second.id
            ) == first.id
            slots = await repo.assignments(session, loadout.id)

        assert slots == {CosmeticSlot.CHARACTER_SKIN: second.id}

    async def test_concurrent_equips_into_one_slot(self, services, make_cosmetic):
        skins = [await make_cosmetic() for _ in range(5)]
        for skin in skins:
            await _own(services, 17, skin)

        await asyncio.gather(
            *(services.cosmetics.equip_cosmetic(17, skin.id) for skin in skins)
        )

        loadout = await services.cosmetics.get_active_loadout(17)
        assert list(loadout.slots) == [CosmeticSlot.CHARACTER_SKIN]
        assert loadout.slots[CosmeticSlot.CHARACTER_SKIN] in {skin.id for skin in skins}
        assert len(await services.cosmetics.list_loadouts(17)) == 1


# ============================================================================
# LOADOUT TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestLoadouts:
    """Test loadout creation and activation."""

    async def test_exactly_one_active(self, services):
        first = await services.cosmetics.create_loadout(20, "Sniper", activate=True)
        second = await services.cosmetics.create_loadout(20, "Melee")

        assert second.is_active is False

        await services.cosmetics.activate_loadout(20, second.loadout_id)

        loadouts = await services.cosmetics.list_loadouts(20)
        active = [view for view in loadouts if view.is_active]
        assert [view.loadout_id for view in active] == [second.loadout_id]
        assert {view.loadout_id for view in loadouts} == {
            first.loadout_id,
            second.loadout_id,
        }

    async def test_equip_targets_active_loadout(self, services, make_cosmetic):
        skin = await make_cosmetic()
        await _own(services, 21, skin)
        first = await services.cosmetics.create_loadout(21, "One", activate=True)
        second = await services.cosmetics.create_loadout(21, "Two")

        await services.cosmetics.equip_cosmetic(21, skin.id)
        view = await services.cosmetics.activate_loadout(21, second.loadout_id)

        assert view.slots == {}
        loadouts = {v.loadout_id: v for v in await services.cosmetics.list_loadouts(21)}
        assert loadouts[first.loadout_id].slots == {CosmeticSlot.CHARACTER_SKIN: skin.id}

    async def test_foreign_loadout(self, services):
        """Another player's loadout is not found."""
        other = await services.cosmetics.create_loadout(22, "Mine")

        with pytest.raises(LoadoutNotFoundError):
            await services.cosmetics.activate_loadout(23, other.loadout_id)

    async def test_duplicate_name(self, services):
        await services.cosmetics.create_loadout(24, "Stealth")

        with pytest.raises(ValidationError):
            await services.cosmetics.create_loadout(24, "Stealth")

    async def test_blank_name(self, services):
        with pytest.raises(ValidationError):
            await services.cosmetics.create_loadout(24, "   ")

    async def test_activation_event(self, services, recorded_events):
        view = await services.cosmetics.create_loadout(25, "Tank")

        await services.cosmetics.activate_loadout(25, view.loadout_id)

        assert recorded_events.payloads(events.LOADOUT_ACTIVATED) == [
            {"player_id": 25, "loadout_id": view.loadout_id}
        ]


@pytest.mark.integration
@pytest.mark.database
class TestCatalog:
    async def test_catalog_in_id_order(self, services, make_cosmetic):
        first = await make_cosmetic()
        second = await make_cosmetic(slot=CosmeticSlot.TITLE)

        catalog = await services.cosmetics.get_cosmetic_catalog()

        assert [item.id for item in catalog] == [first.id, second.id]

    async def test_owned_newest_first(self, services, make_cosmetic):
        first = await make_cosmetic()
        second = await make_cosmetic()
        await _own(services, 30, first)
        await _own(services, 30, second)

        owned = await services.cosmetics.get_owned_cosmetics(30)

        assert [item.cosmetic["id"] for item in owned] == [second.id, first.id]
