"""
Cosmetics module: catalog reads, ownership, purchases and loadouts.

- repository: CosmeticRepository, OwnershipRepository, LoadoutRepository
- service: CosmeticService
"""
