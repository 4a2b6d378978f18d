"""
Domain modules of the progression engine.

- shared: base classes, domain exceptions, formulas, follow-ups
- progression: progression record store and prestige
- economy: currency ledger
- cosmetics: ownership, purchases and loadouts
- loot: loot tables and drops
- match: match reward orchestration
"""
