"""
Cosmetic Service - catalog, ownership, purchases and loadouts.

Purpose
-------
Validates ownership, applies purchases and assigns cosmetics into slotted
loadouts. Every mutating method runs in exactly one unit of work; domain
events are emitted after it commits.

Responsibilities
----------------
- Purchase: debit currency through the ledger and grant ownership atomically
- Equip / unequip: keep slot occupancy at 0 or 1 in the active loadout
- Loadouts: list, create, activate (exactly one active per player)
- Reads: catalog and owned cosmetics

Design Notes
------------
- Ownership is checked before mutating and re-checked by the grant itself:
  a grant that inserts nothing (a concurrent purchase won) raises
  `CosmeticAlreadyOwnedError`, which rolls the debit back with it.
- The active loadout is created lazily with the configured default name
  (`cosmetics.default_loadout_name`).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from zdefense.core.event import events
from zdefense.core.logging.logger import get_logger
from zdefense.database.models import (
    CosmeticItem,
    CosmeticSlot,
    CurrencyTransactionKind,
    Loadout,
    UnlockMethod,
)
from zdefense.modules.shared.base_service import BaseService
from zdefense.modules.shared.exceptions import (
    CosmeticAlreadyOwnedError,
    CosmeticNotFoundError,
    CosmeticNotOwnedError,
    InsufficientCurrencyError,
    LoadoutNotFoundError,
    ValidationError,
)
from .repository import CosmeticRepository, LoadoutRepository, OwnershipRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from zdefense.core.config.manager import ConfigManager
    from zdefense.core.database.service import DatabaseService
    from zdefense.core.event.bus import EventBus
    from zdefense.modules.economy.ledger import CurrencyLedger, LedgerEntry

DEFAULT_LOADOUT_NAME = "Default"


# ============================================================================
# Result Types
# ============================================================================


@dataclass(frozen=True)
class PurchaseResult:
    player_id: int
    cosmetic_id: int
    cost: int
    balance_after: int
    transaction_id: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "cosmetic_id": self.cosmetic_id,
            "cost": self.cost,
            "balance_after": self.balance_after,
            "transaction_id": self.transaction_id,
        }


@dataclass(frozen=True)
class OwnedCosmetic:
    cosmetic: Dict[str, Any]
    unlock_method: UnlockMethod
    unlocked_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.cosmetic,
            "unlock_method": self.unlock_method.value,
            "unlocked_at": self.unlocked_at.isoformat(),
        }


@dataclass(frozen=True)
class LoadoutView:
    loadout_id: int
    name: str
    is_active: bool
    slots: Dict[CosmeticSlot, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "loadout_id": self.loadout_id,
            "name": self.name,
            "is_active": self.is_active,
            "slots": {slot.value: cosmetic_id for slot, cosmetic_id in self.slots.items()},
        }


# ============================================================================
# CosmeticService
# ============================================================================


class CosmeticService(BaseService):
    """
    Cosmetic ownership and loadout management.

    Dependencies
    ------------
    - DatabaseService: one transaction per mutating call
    - CurrencyLedger: purchase debits
    - EventBus: cosmetics.granted, cosmetics.equipped,
      cosmetics.loadout_activated, economy.currency_changed
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        ledger: CurrencyLedger,
    ) -> None:
        super().__init__(database, config_manager, event_bus, logger)
        self._ledger = ledger
        self._cosmetic_repo = CosmeticRepository(
            get_logger(f"{__name__}.CosmeticRepository")
        )
        self._ownership_repo = OwnershipRepository(
            get_logger(f"{__name__}.OwnershipRepository")
        )
        self._loadout_repo = LoadoutRepository(
            get_logger(f"{__name__}.LoadoutRepository")
        )

    @property
    def default_loadout_name(self) -> str:
        return str(
            self.get_config("cosmetics.default_loadout_name", DEFAULT_LOADOUT_NAME)
        )

    async def _require_cosmetic(
        self, session: AsyncSession, cosmetic_id: int
    ) -> CosmeticItem:
        cosmetic = await self._cosmetic_repo.get(session, cosmetic_id)
        if cosmetic is None:
            raise CosmeticNotFoundError(cosmetic_id)
        return cosmetic

    # ========================================================================
    # Reads
    # ========================================================================

    async def get_cosmetic_catalog(self) -> List[CosmeticItem]:
        with self.storage_errors("get_cosmetic_catalog"):
            async with self.db.get_session() as session:
                return await self._cosmetic_repo.catalog(session)

    async def get_owned_cosmetics(self, player_id: int) -> List[OwnedCosmetic]:
        """Owned cosmetics, most recent unlock first."""
        self.validate_positive_int(player_id, "player_id")

        with self.storage_errors("get_owned_cosmetics", player_id=player_id):
            async with self.db.get_session() as session:
                rows = await self._ownership_repo.list_owned(session, player_id)
                return [
                    OwnedCosmetic(
                        cosmetic=row.cosmetic.to_dict(),
                        unlock_method=row.unlock_method,
                        unlocked_at=row.unlocked_at,
                    )
                    for row in rows
                ]

    # ========================================================================
    # Purchase
    # ========================================================================

    async def purchase_cosmetic(
        self, player_id: int, cosmetic_id: int
    ) -> PurchaseResult:
        """
        Buy a cosmetic: debit its cost and grant ownership atomically.

        Raises:
            CosmeticNotFoundError: Unknown cosmetic
            CosmeticAlreadyOwnedError: Player already owns it
            InsufficientCurrencyError: Balance is below the cost
        """
        self.validate_positive_int(player_id, "player_id")
        self.validate_positive_int(cosmetic_id, "cosmetic_id")
        self.log_operation(
            "purchase_cosmetic", player_id=player_id, cosmetic_id=cosmetic_id
        )

        entry: Optional[LedgerEntry] = None
        with self.storage_errors(
            "purchase_cosmetic", player_id=player_id, cosmetic_id=cosmetic_id
        ):
            async with self.db.get_transaction() as session:
                cosmetic = await self._require_cosmetic(session, cosmetic_id)

                if await self._ownership_repo.owns(session, player_id, cosmetic_id):
                    raise CosmeticAlreadyOwnedError(player_id, cosmetic_id)

                balance = await self._ledger.get_balance(session, player_id)
                if balance < cosmetic.currency_cost:
                    raise InsufficientCurrencyError(
                        player_id, cosmetic.currency_cost, balance
                    )

                entry = await self._ledger.apply_currency_delta(
                    session,
                    player_id,
                    -cosmetic.currency_cost,
                    CurrencyTransactionKind.PURCHASE,
                    reference_id=str(cosmetic_id),
                )

                granted = await self._ownership_repo.grant(
                    session, player_id, cosmetic_id, UnlockMethod.PURCHASE
                )
                if not granted:
                    raise CosmeticAlreadyOwnedError(player_id, cosmetic_id)

                balance_after = entry.balance_after if entry else balance

        self.log.info(
            "Cosmetic purchased",
            extra={
                "player_id": player_id,
                "cosmetic_id": cosmetic_id,
                "cost": cosmetic.currency_cost,
                "balance_after": balance_after,
            },
        )

        if entry is not None:
            await self.emit_event(events.CURRENCY_CHANGED, entry.to_event())
        await self.emit_event(
            events.COSMETIC_GRANTED,
            {
                "player_id": player_id,
                "cosmetic_id": cosmetic_id,
                "unlock_method": UnlockMethod.PURCHASE.value,
            },
        )

        return PurchaseResult(
            player_id=player_id,
            cosmetic_id=cosmetic_id,
            cost=cosmetic.currency_cost,
            balance_after=balance_after,
            transaction_id=entry.transaction_id if entry else None,
        )

    # ========================================================================
    # Equip
    # ========================================================================

    async def equip_cosmetic(self, player_id: int, cosmetic_id: int) -> None:
        """
        Put an owned cosmetic into its slot of the active loadout, replacing
        any previous occupant.

        Raises:
            CosmeticNotFoundError: Unknown cosmetic
            CosmeticNotOwnedError: Player does not own it
        """
        self.validate_positive_int(player_id, "player_id")
        self.validate_positive_int(cosmetic_id, "cosmetic_id")
        self.log_operation(
            "equip_cosmetic", player_id=player_id, cosmetic_id=cosmetic_id
        )

        with self.storage_errors(
            "equip_cosmetic", player_id=player_id, cosmetic_id=cosmetic_id
        ):
            async with self.db.get_transaction() as session:
                cosmetic = await self._require_cosmetic(session, cosmetic_id)

                if not await self._ownership_repo.owns(session, player_id, cosmetic_id):
                    raise CosmeticNotOwnedError(player_id, cosmetic_id)

                loadout = await self._loadout_repo.ensure_active(
                    session, player_id, self.default_loadout_name
                )
                replaced = await self._loadout_repo.assign_slot(
                    session, loadout.id, cosmetic.slot, cosmetic_id
                )
                loadout_id = loadout.id
                slot = cosmetic.slot

        self.log.info(
            "Cosmetic equipped",
            extra={
                "player_id": player_id,
                "cosmetic_id": cosmetic_id,
                "loadout_id": loadout_id,
                "slot": slot.value,
                "replaced_cosmetic_id": replaced,
            },
        )
        await self.emit_event(
            events.COSMETIC_EQUIPPED,
            {
                "player_id": player_id,
                "cosmetic_id": cosmetic_id,
                "loadout_id": loadout_id,
                "slot": slot.value,
            },
        )

    async def unequip_slot(
        self, player_id: int, slot: Union[CosmeticSlot, str]
    ) -> bool:
        """
        Empty a slot of the active loadout. Returns False when it was empty
        or the player has no active loadout.
        """
        self.validate_positive_int(player_id, "player_id")
        slot = self._coerce_slot(slot)

        with self.storage_errors("unequip_slot", player_id=player_id):
            async with self.db.get_transaction() as session:
                loadout = await self._loadout_repo.get_active(session, player_id)
                if loadout is None:
                    return False
                removed = await self._loadout_repo.clear_slot(
                    session, loadout.id, slot
                )

        self.log.info(
            "Loadout slot cleared",
            extra={"player_id": player_id, "slot": slot.value, "removed": removed},
        )
        return removed > 0

    @staticmethod
    def _coerce_slot(slot: Union[CosmeticSlot, str]) -> CosmeticSlot:
        try:
            return CosmeticSlot(slot)
        except ValueError:
            raise ValidationError("slot", f"unknown cosmetic slot {slot!r}") from None

    # ========================================================================
    # Loadouts
    # ========================================================================

    async def list_loadouts(self, player_id: int) -> List[LoadoutView]:
        self.validate_positive_int(player_id, "player_id")

        with self.storage_errors("list_loadouts", player_id=player_id):
            async with self.db.get_session() as session:
                loadouts = await self._loadout_repo.list_for_player(session, player_id)
                return [
                    LoadoutView(
                        loadout_id=loadout.id,
                        name=loadout.name,
                        is_active=loadout.is_active,
                        slots=await self._loadout_repo.assignments(session, loadout.id),
                    )
                    for loadout in loadouts
                ]

    async def get_active_loadout(self, player_id: int) -> Optional[LoadoutView]:
        """The active loadout with its slot → cosmetic id mapping, if any."""
        self.validate_positive_int(player_id, "player_id")

        with self.storage_errors("get_active_loadout", player_id=player_id):
            async with self.db.get_session() as session:
                loadout = await self._loadout_repo.get_active(session, player_id)
                if loadout is None:
                    return None
                return LoadoutView(
                    loadout_id=loadout.id,
                    name=loadout.name,
                    is_active=True,
                    slots=await self._loadout_repo.assignments(session, loadout.id),
                )

    async def create_loadout(
        self, player_id: int, name: str, activate: bool = False
    ) -> LoadoutView:
        """
        Create an empty named loadout, optionally making it the active one.

        Raises:
            ValidationError: Blank name, or the player already has a loadout
                with this name
        """
        self.validate_positive_int(player_id, "player_id")
        name = (name or "").strip()
        if not name or len(name) > 50:
            raise ValidationError("name", "loadout name must be 1-50 characters")

        self.log_operation(
            "create_loadout", player_id=player_id, loadout_name=name, activate=activate
        )

        with self.storage_errors("create_loadout", player_id=player_id):
            async with self.db.get_transaction() as session:
                if await self._loadout_repo.get_by_name(session, player_id, name):
                    raise ValidationError(
                        "name", f"a loadout named '{name}' already exists"
                    )
                if activate:
                    await self._loadout_repo.deactivate_all(session, player_id)

                loadout = await self._loadout_repo.add(
                    session,
                    Loadout(player_id=player_id, name=name, is_active=activate),
                )
                view = LoadoutView(
                    loadout_id=loadout.id, name=name, is_active=activate, slots={}
                )

        if activate:
            await self.emit_event(
                events.LOADOUT_ACTIVATED,
                {"player_id": player_id, "loadout_id": view.loadout_id},
            )
        return view

    async def activate_loadout(self, player_id: int, loadout_id: int) -> LoadoutView:
        """
        Make `loadout_id` the player's only active loadout.

        Raises:
            LoadoutNotFoundError: Unknown loadout or owned by another player
        """
        self.validate_positive_int(player_id, "player_id")
        self.validate_positive_int(loadout_id, "loadout_id")
        self.log_operation(
            "activate_loadout", player_id=player_id, loadout_id=loadout_id
        )

        with self.storage_errors("activate_loadout", player_id=player_id):
            async with self.db.get_transaction() as session:
                loadout = await self._loadout_repo.get_for_player(
                    session, player_id, loadout_id
                )
                if loadout is None:
                    raise LoadoutNotFoundError(loadout_id)

                await self._loadout_repo.deactivate_all(session, player_id)
                await self._loadout_repo.mark_active(session, loadout_id)

                view = LoadoutView(
                    loadout_id=loadout_id,
                    name=loadout.name,
                    is_active=True,
                    slots=await self._loadout_repo.assignments(session, loadout_id),
                )

        await self.emit_event(
            events.LOADOUT_ACTIVATED,
            {"player_id": player_id, "loadout_id": loadout_id},
        )
        return view
