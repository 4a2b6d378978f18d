"""Names of the domain events published by the engine."""

MATCH_REWARDED = "progression.match_rewarded"
LEVEL_UP = "progression.level_up"
PRESTIGED = "progression.prestiged"
CURRENCY_CHANGED = "economy.currency_changed"
COSMETIC_GRANTED = "cosmetics.granted"
COSMETIC_EQUIPPED = "cosmetics.equipped"
LOADOUT_ACTIVATED = "cosmetics.loadout_activated"
LOOT_DROPPED = "loot.dropped"
