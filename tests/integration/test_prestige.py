"""
Integration tests for PrestigeService.
"""

import pytest

from zdefense.core.event import events
from zdefense.database.models import CosmeticSlot, UnlockMethod


@pytest.mark.integration
@pytest.mark.database
class TestPrestigePlayer:
    """Test reset-and-advance with tier cosmetics."""

    async def test_reset_and_advance(self, services):
        await services.match_rewards.award_match_rewards(
            1, kills=0, deaths=0, waves_survived=40, scrap_earned=0, currency_earned=30
        )

        result = await services.prestige.prestige_player(1)

        assert result.new_tier == 1
        snapshot = await services.progression.get_progression(1)
        assert snapshot.level == 1
        assert snapshot.experience == 0
        assert snapshot.prestige_tier == 1
        # Currency and lifetime counters survive prestige
        assert snapshot.currency_balance == 30
        assert snapshot.total_matches_played == 1

    async def test_tier_cosmetics_granted_once(self, services, make_cosmetic):
        """0→1 grants the tier-1 item; 1→2 grants only tier-2 items."""
        tier_one = await make_cosmetic(
            slot=CosmeticSlot.TITLE, is_prestige_only=True, unlock_level=1
        )
        tier_two = await make_cosmetic(
            slot=CosmeticSlot.BADGE, is_prestige_only=True, unlock_level=2
        )
        await make_cosmetic(unlock_level=1)

        first = await services.prestige.prestige_player(2)
        second = await services.prestige.prestige_player(2)

        assert first.granted_cosmetic_ids == [tier_one.id]
        assert second.new_tier == 2
        assert second.granted_cosmetic_ids == [tier_two.id]

        owned = await services.cosmetics.get_owned_cosmetics(2)
        assert {item.cosmetic["id"] for item in owned} == {tier_one.id, tier_two.id}
        assert all(item.unlock_method is UnlockMethod.PRESTIGE for item in owned)

    async def test_already_owned_not_reported(self, services, make_cosmetic, make_loot_table):
        title = await make_cosmetic(is_prestige_only=True, unlock_level=1)
        await make_loot_table([(title.id, 1)])
        await services.loot_drop.generate_loot_drop(3)

        result = await services.prestige.prestige_player(3)

        assert result.new_tier == 1
        assert result.granted_cosmetic_ids == []

    async def test_failed_grant_keeps_reset(self, services, make_cosmetic, mocker):
        await make_cosmetic(is_prestige_only=True, unlock_level=1)
        mocker.patch.object(
            services.prestige._ownership_repo,
            "grant",
            side_effect=RuntimeError("grant failed"),
        )

        result = await services.prestige.prestige_player(4)

        assert result.new_tier == 1
        assert result.granted_cosmetic_ids == []
        snapshot = await services.progression.get_progression(4)
        assert snapshot.prestige_tier == 1

    async def test_events(self, services, make_cosmetic, recorded_events):
        title = await make_cosmetic(is_prestige_only=True, unlock_level=1)

        await services.prestige.prestige_player(5)

        assert recorded_events.payloads(events.PRESTIGED) == [
            {"player_id": 5, "prestige_tier": 1}
        ]
        assert recorded_events.payloads(events.COSMETIC_GRANTED) == [
            {"player_id": 5, "cosmetic_id": title.id, "unlock_method": "prestige"}
        ]
