"""
Integration tests for loot drops and loot table administration.
"""

import pytest

from zdefense.core.event import events
from zdefense.database.models import UnlockMethod
from zdefense.modules.shared.exceptions import (
    CosmeticNotFoundError,
    EmptyLootTableError,
    LootTableEntryNotFoundError,
    LootTableNotFoundError,
    NoActiveLootTablesError,
    NoDropFromAnyTableError,
    ValidationError,
)


# ============================================================================
# DROP TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestGenerateLootDrop:
    """Test weighted drops and ownership grants."""

    async def test_drop_grants_cosmetic(self, services, make_cosmetic, make_loot_table):
        crate_skin = await make_cosmetic()
        table = await make_loot_table([(crate_skin.id, 5)])

        result = await services.loot_drop.generate_loot_drop(1)

        assert result.loot_table_id == table.id
        assert result.cosmetic.id == crate_skin.id
        assert result.newly_granted is True

        owned = await services.cosmetics.get_owned_cosmetics(1)
        assert owned[0].cosmetic["id"] == crate_skin.id
        assert owned[0].unlock_method is UnlockMethod.LOOT_DROP

    async def test_duplicate_drop_is_noop(self, services, make_cosmetic, make_loot_table):
        """A repeated drop keeps one ownership row and reports newly_granted False."""
        crate_skin = await make_cosmetic()
        await make_loot_table([(crate_skin.id, 1)])

        await services.loot_drop.generate_loot_drop(2)
        again = await services.loot_drop.generate_loot_drop(2)

        assert again.newly_granted is False
        assert len(await services.cosmetics.get_owned_cosmetics(2)) == 1

    async def test_first_hitting_table_wins(self, services, make_cosmetic, make_loot_table):
        never = await make_cosmetic()
        always = await make_cosmetic()
        await make_loot_table([(never.id, 1)], drop_chance=0.0)
        hit = await make_loot_table([(always.id, 1)], drop_chance=1.0)

        result = await services.loot_drop.generate_loot_drop(3)

        assert result.loot_table_id == hit.id
        assert result.cosmetic.id == always.id

    async def test_inactive_tables_ignored(self, services, make_cosmetic, make_loot_table):
        skin = await make_cosmetic()
        await make_loot_table([(skin.id, 1)], is_active=False)

        with pytest.raises(NoActiveLootTablesError):
            await services.loot_drop.generate_loot_drop(4)

    async def test_no_tables(self, services):
        with pytest.raises(NoActiveLootTablesError):
            await services.loot_drop.generate_loot_drop(4)

    async def test_every_roll_misses(self, services, make_cosmetic, make_loot_table):
        skin = await make_cosmetic()
        await make_loot_table([(skin.id, 1)], drop_chance=0.0)
        await make_loot_table([(skin.id, 1)], drop_chance=0.0)

        with pytest.raises(NoDropFromAnyTableError) as exc_info:
            await services.loot_drop.generate_loot_drop(5)

        assert exc_info.value.tables_rolled == 2

    async def test_empty_table(self, services, make_loot_table):
        table = await make_loot_table([])

        with pytest.raises(EmptyLootTableError) as exc_info:
            await services.loot_drop.generate_loot_drop(6)

        assert exc_info.value.loot_table_id == table.id
        assert await services.cosmetics.get_owned_cosmetics(6) == []

    async def test_events(self, services, make_cosmetic, make_loot_table, recorded_events):
        skin = await make_cosmetic()
        table = await make_loot_table([(skin.id, 1)])

        await services.loot_drop.generate_loot_drop(7)
        await services.loot_drop.generate_loot_drop(7)

        dropped = recorded_events.payloads(events.LOOT_DROPPED)
        assert [p["newly_granted"] for p in dropped] == [True, False]
        assert dropped[0]["loot_table_id"] == table.id
        assert len(recorded_events.payloads(events.COSMETIC_GRANTED)) == 1

    async def test_weighted_choice_hits_every_entry(
        self, services, make_cosmetic, make_loot_table
    ):
        """Across many players both entries of a 1:3 table come up."""
        common = await make_cosmetic()
        rare = await make_cosmetic()
        await make_loot_table([(rare.id, 1), (common.id, 3)])

        dropped = set()
        for player_id in range(100, 140):
            result = await services.loot_drop.generate_loot_drop(player_id)
            dropped.add(result.cosmetic.id)

        assert dropped == {common.id, rare.id}


# ============================================================================
# ADMIN TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestLootTableAdmin:
    """Test loot table and entry CRUD."""

    async def test_create_and_list(self, services):
        table = await services.loot_tables.create_loot_table(
            "Wave 10 Crate", 0.25, description="Boss wave reward"
        )

        assert table.id is not None
        fetched = await services.loot_tables.get_loot_table(table.id)
        assert fetched.name == "Wave 10 Crate"
        assert fetched.drop_chance == pytest.approx(0.25)
        assert [t.id for t in await services.loot_tables.list_active_loot_tables()] == [
            table.id
        ]

    @pytest.mark.parametrize("drop_chance", [-0.1, 1.5, "high"])
    async def test_invalid_drop_chance(self, services, drop_chance):
        with pytest.raises(ValidationError):
            await services.loot_tables.create_loot_table("Crate", drop_chance)

    async def test_blank_name(self, services):
        with pytest.raises(ValidationError):
            await services.loot_tables.create_loot_table("  ", 0.5)

    async def test_duplicate_name(self, services):
        await services.loot_tables.create_loot_table("Crate", 0.5)

        with pytest.raises(ValidationError):
            await services.loot_tables.create_loot_table("Crate", 0.9)

    async def test_partial_update(self, services):
        table = await services.loot_tables.create_loot_table(
            "Crate", 0.5, description="Old"
        )

        updated = await services.loot_tables.update_loot_table(
            table.id, is_active=False
        )

        assert updated.is_active is False
        assert updated.description == "Old"
        assert updated.drop_chance == pytest.approx(0.5)
        assert await services.loot_tables.list_active_loot_tables() == []

        cleared = await services.loot_tables.update_loot_table(table.id, description=None)
        assert cleared.description is None

    async def test_unknown_table(self, services):
        with pytest.raises(LootTableNotFoundError):
            await services.loot_tables.get_loot_table(9999)
        with pytest.raises(LootTableNotFoundError):
            await services.loot_tables.update_loot_table(9999, drop_chance=0.1)
        with pytest.raises(LootTableNotFoundError):
            await services.loot_tables.list_loot_table_entries(9999)

    async def test_entries(self, services, make_cosmetic):
        skin = await make_cosmetic()
        table = await services.loot_tables.create_loot_table("Crate", 1.0)

        entry = await services.loot_tables.create_loot_table_entry(
            table.id, skin.id, weight=4, min_quantity=1, max_quantity=2
        )

        details = await services.loot_tables.list_loot_table_entries_with_cosmetics(table.id)
        assert len(details) == 1
        assert details[0].entry.id == entry.id
        assert details[0].cosmetic.id == skin.id

        updated = await services.loot_tables.update_loot_table_entry(entry.id, weight=9)
        assert updated.weight == 9
        assert updated.max_quantity == 2

    async def test_entry_validation(self, services, make_cosmetic):
        skin = await make_cosmetic()
        table = await services.loot_tables.create_loot_table("Crate", 1.0)

        with pytest.raises(ValidationError):
            await services.loot_tables.create_loot_table_entry(table.id, skin.id, weight=0)
        with pytest.raises(ValidationError) as exc_info:
            await services.loot_tables.create_loot_table_entry(
                table.id, skin.id, min_quantity=3, max_quantity=2
            )
        assert exc_info.value.field == "max_quantity"

    async def test_entry_references(self, services, make_cosmetic):
        skin = await make_cosmetic()
        table = await services.loot_tables.create_loot_table("Crate", 1.0)

        with pytest.raises(CosmeticNotFoundError):
            await services.loot_tables.create_loot_table_entry(table.id, 9999)
        with pytest.raises(LootTableNotFoundError):
            await services.loot_tables.create_loot_table_entry(9999, skin.id)

    async def test_delete_entry(self, services, make_cosmetic):
        skin = await make_cosmetic()
        table = await services.loot_tables.create_loot_table("Crate", 1.0)
        entry = await services.loot_tables.create_loot_table_entry(table.id, skin.id)

        await services.loot_tables.delete_loot_table_entry(entry.id)

        with pytest.raises(LootTableEntryNotFoundError):
            await services.loot_tables.get_loot_table_entry(entry.id)

    async def test_delete_table_removes_entries(self, services, make_cosmetic):
        skin = await make_cosmetic()
        table = await services.loot_tables.create_loot_table("Crate", 1.0)
        entry = await services.loot_tables.create_loot_table_entry(table.id, skin.id)

        await services.loot_tables.delete_loot_table(table.id)

        with pytest.raises(LootTableNotFoundError):
            await services.loot_tables.get_loot_table(table.id)
        with pytest.raises(LootTableEntryNotFoundError):
            await services.loot_tables.get_loot_table_entry(entry.id)
