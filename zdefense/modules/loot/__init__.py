"""
Loot module: weighted cosmetic drops.

- selection: pure table roll and weighted entry selection
- repository: loot table/entry data access
- service: LootDropService (drops)
- admin_service: LootTableService (table and entry management)
"""
