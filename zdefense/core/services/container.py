"""
Service Container
=================

Purpose
-------
Centralized dependency injection container for the engine's domain services.
Every service is built once, shares the same DatabaseService, ConfigManager
and EventBus, and is handed out through a property.

Responsibilities
----------------
- Build all domain services with their dependencies
- Share one CurrencyLedger between every service that moves currency
- Manage service lifecycle (initialization, shutdown)
- Minimal observability (per-service init timing + health check)

Non-Responsibilities
--------------------
- Database engine lifecycle (delegated to ApplicationContext)
- Configuration loading (delegated to ApplicationContext)

Architecture Notes
------------------
All domain services follow the same constructor pattern:
`(database, config_manager, event_bus, logger, **collaborators)`.
"""

from __future__ import annotations

import random
import time
from typing import TYPE_CHECKING, Any, Dict, Optional

from zdefense.core.logging.logger import get_logger
from zdefense.modules.cosmetics.service import CosmeticService
from zdefense.modules.economy.ledger import (
    CurrencyLedger,
    CurrencyLedgerService,
    build_currency_ledger,
)
from zdefense.modules.loot.admin_service import LootTableService
from zdefense.modules.loot.service import LootDropService
from zdefense.modules.match.service import MatchRewardService
from zdefense.modules.progression.prestige_service import PrestigeService
from zdefense.modules.progression.service import ProgressionService

if TYPE_CHECKING:
    from logging import Logger

    from zdefense.core.config.manager import ConfigManager
    from zdefense.core.database.service import DatabaseService
    from zdefense.core.event.bus import EventBus

EXPECTED_SERVICE_COUNT = 7


class ServiceContainer:
    """
    Dependency injection container for all domain services.

    Usage:
        container = ServiceContainer(database, config_manager, event_bus, logger)
        await container.initialize()

        result = await container.match_rewards.award_match_rewards(...)
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        """
        Args:
            database: Initialized database service
            config_manager: Game-balance configuration manager
            event_bus: Event bus for cross-module communication
            logger: Structured logger instance
            rng: Random source for loot drops (seed it in tests)
        """
        self._database = database
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger
        self._rng = rng

        self._ledger: Optional[CurrencyLedger] = None

        # Progression services
        self._progression: Optional[ProgressionService] = None
        self._prestige: Optional[PrestigeService] = None
        self._match_rewards: Optional[MatchRewardService] = None

        # Economy services
        self._currency: Optional[CurrencyLedgerService] = None
        self._cosmetics: Optional[CosmeticService] = None

        # Loot services
        self._loot_drop: Optional[LootDropService] = None
        self._loot_tables: Optional[LootTableService] = None

        self._initialized = False

        self._service_init_times: Dict[str, float] = {}
        self._init_start: Optional[float] = None
        self._init_end: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        """
        Initialize all services.

        Call this during application startup after the database, ConfigManager
        and EventBus are ready.
        """
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        self._init_start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        try:
            self._ledger = build_currency_ledger()

            self._progression = self._create_service("progression", ProgressionService)
            self._prestige = self._create_service("prestige", PrestigeService)
            self._currency = self._create_service(
                "currency", CurrencyLedgerService, ledger=self._ledger
            )
            self._cosmetics = self._create_service(
                "cosmetics", CosmeticService, ledger=self._ledger
            )
            self._match_rewards = self._create_service(
                "match_rewards", MatchRewardService, ledger=self._ledger
            )
            self._loot_drop = self._create_service(
                "loot_drop", LootDropService, rng=self._rng
            )
            self._loot_tables = self._create_service("loot_tables", LootTableService)

            self._init_end = time.perf_counter()
            self._initialized = True

            extra_data: Dict[str, Any] = {
                "total_time_seconds": round(self._init_end - self._init_start, 3),
                "service_count": len(self._service_init_times),
            }

            if self._service_init_times:
                slowest = max(
                    self._service_init_times,
                    key=self._service_init_times.__getitem__,
                )
                extra_data["slowest_service"] = slowest
                extra_data["slowest_duration"] = round(
                    self._service_init_times[slowest],
                    3,
                )

            self._logger.info(
                "Service container initialized successfully",
                extra=extra_data,
            )

        except Exception as e:
            self._logger.critical(
                "Service container initialization failed",
                exc_info=True,
                extra={"error": str(e)},
            )
            raise

    def _create_service(self, name: str, cls: type, **collaborators: Any) -> Any:
        """
        Instantiate one service with the shared dependencies and time it.

        Raises:
            Exception: If service initialization fails
        """
        start = time.perf_counter()

        try:
            instance = cls(
                database=self._database,
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
                **collaborators,
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._service_init_times[name] = duration
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")

        return instance

    async def shutdown(self) -> None:
        """Release services. The database is shut down by its owner."""
        if not self._initialized:
            return

        self._logger.info("Shutting down service container...")
        self._initialized = False
        self._logger.info("Service container shut down")

    async def health_check(self) -> Dict[str, bool | float | int | None]:
        """Health snapshot for admin diagnostics."""
        database_ok = await self._database.health_check()
        return {
            "initialized": self._initialized,
            "database": database_ok,
            "service_count": len(self._service_init_times),
            "total_init_time_seconds": (
                round(self._init_end - self._init_start, 3)
                if self._init_start and self._init_end
                else None
            ),
            "all_services_available": self._initialized
            and len(self._service_init_times) == EXPECTED_SERVICE_COUNT,
        }

    def _require(self, service: Optional[Any]) -> Any:
        if not self._initialized or service is None:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return service

    # ========================================================================
    # Progression Services
    # ========================================================================

    @property
    def progression(self) -> ProgressionService:
        return self._require(self._progression)

    @property
    def prestige(self) -> PrestigeService:
        return self._require(self._prestige)

    @property
    def match_rewards(self) -> MatchRewardService:
        return self._require(self._match_rewards)

    # ========================================================================
    # Economy Services
    # ========================================================================

    @property
    def ledger(self) -> CurrencyLedger:
        return self._require(self._ledger)

    @property
    def currency(self) -> CurrencyLedgerService:
        return self._require(self._currency)

    @property
    def cosmetics(self) -> CosmeticService:
        return self._require(self._cosmetics)

    # ========================================================================
    # Loot Services
    # ========================================================================

    @property
    def loot_drop(self) -> LootDropService:
        return self._require(self._loot_drop)

    @property
    def loot_tables(self) -> LootTableService:
        return self._require(self._loot_tables)

    # ========================================================================
    # Utility
    # ========================================================================

    @property
    def is_initialized(self) -> bool:
        """Check if container is initialized."""
        return self._initialized
