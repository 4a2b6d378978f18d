"""
Application Context - infrastructure orchestration for the engine.

Purpose
-------
Single point of control that brings the engine up in dependency order and
tears it down in reverse.

Initialization Order:
    1. Logging
    2. ConfigManager (YAML game-balance values)
    3. DatabaseService (engine, optional schema creation)
    4. EventBus
    5. ServiceContainer

Shutdown Order (Reverse):
    1. ServiceContainer.shutdown()
    2. DatabaseService.shutdown()
    3. Logging
"""

from __future__ import annotations

import random
import time
from typing import Optional

from zdefense.core.config import Config
from zdefense.core.config.manager import ConfigManager
from zdefense.core.database.service import DatabaseService
from zdefense.core.event.bus import EventBus
from zdefense.core.logging.logger import get_logger, setup_logging, shutdown_logging
from zdefense.core.services.container import ServiceContainer

logger = get_logger(__name__)


class ApplicationContext:
    """
    Kernel for infrastructure orchestration and dependency injection.

    Usage:
        context = ApplicationContext(create_schema=True)
        await context.initialize()
        services = context.service_container
        ...
        await context.shutdown()
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        *,
        config_dir: Optional[str] = None,
        create_schema: bool = False,
        rng: Optional[random.Random] = None,
        configure_logging: bool = True,
    ) -> None:
        self._database_url = database_url
        self._config_dir = config_dir
        self._create_schema = create_schema
        self._rng = rng
        self._configure_logging = configure_logging

        self._config_manager: Optional[ConfigManager] = None
        self._database: Optional[DatabaseService] = None
        self._event_bus: Optional[EventBus] = None
        self._service_container: Optional[ServiceContainer] = None
        self._initialized: bool = False

    # ========================================================================
    # INITIALIZATION
    # ========================================================================

    async def initialize(self) -> None:
        """
        Initialize all infrastructure components in dependency order.

        Raises:
            RuntimeError: If already initialized or initialization fails
        """
        if self._initialized:
            raise RuntimeError("ApplicationContext already initialized")

        if self._configure_logging:
            setup_logging()

        logger.info(
            "Application context initialization starting",
            extra=Config.get_config_summary(),
        )
        start_time = time.perf_counter()

        try:
            self._config_manager = ConfigManager(
                config_dir=self._config_dir or Config.CONFIG_DIR
            )
            self._config_manager.load()
            logger.info(
                "ConfigManager initialized",
                extra={"loaded_files": self._config_manager.loaded_files},
            )

            self._database = DatabaseService(self._database_url)
            await self._database.initialize()
            if self._create_schema:
                await self._database.create_schema()
            logger.info("DatabaseService initialized")

            self._event_bus = EventBus(self._config_manager)

            self._service_container = ServiceContainer(
                database=self._database,
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=get_logger("zdefense.core.services.container"),
                rng=self._rng,
            )
            await self._service_container.initialize()

            self._initialized = True
            logger.info(
                "Application context initialized",
                extra={
                    "total_time_ms": round((time.perf_counter() - start_time) * 1000, 2)
                },
            )

        except Exception as exc:
            logger.critical(
                "Application context initialization failed",
                extra={
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            await self._emergency_shutdown()
            raise RuntimeError("Failed to initialize application context") from exc

    # ========================================================================
    # GRACEFUL SHUTDOWN
    # ========================================================================

    async def shutdown(self) -> None:
        """Shut down all components in reverse dependency order."""
        if not self._initialized:
            logger.warning("ApplicationContext not initialized, nothing to shut down")
            return

        logger.info("Application context shutdown starting")

        if self._service_container:
            try:
                await self._service_container.shutdown()
            except Exception as exc:
                logger.error(
                    "Error shutting down service container",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )

        if self._database:
            try:
                await self._database.shutdown()
            except Exception as exc:
                logger.error(
                    "Error shutting down database",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )

        self._initialized = False
        logger.info("Application context shutdown complete")

        if self._configure_logging:
            shutdown_logging()

    async def _emergency_shutdown(self) -> None:
        """Best-effort cleanup after a failed initialization."""
        logger.warning("Performing emergency shutdown")

        if self._service_container:
            try:
                await self._service_container.shutdown()
            except Exception:
                logger.debug("Service container cleanup failed", exc_info=True)

        if self._database:
            try:
                await self._database.shutdown()
            except Exception:
                logger.debug("Database cleanup failed", exc_info=True)

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    @property
    def config_manager(self) -> ConfigManager:
        if not self._initialized or self._config_manager is None:
            raise RuntimeError(
                "ConfigManager not available: ApplicationContext not initialized"
            )
        return self._config_manager

    @property
    def database(self) -> DatabaseService:
        if not self._initialized or self._database is None:
            raise RuntimeError(
                "DatabaseService not available: ApplicationContext not initialized"
            )
        return self._database

    @property
    def event_bus(self) -> EventBus:
        if not self._initialized or self._event_bus is None:
            raise RuntimeError(
                "EventBus not available: ApplicationContext not initialized"
            )
        return self._event_bus

    @property
    def service_container(self) -> ServiceContainer:
        if not self._initialized or self._service_container is None:
            raise RuntimeError(
                "ServiceContainer not available: ApplicationContext not initialized"
            )
        return self._service_container

    @property
    def is_initialized(self) -> bool:
        return self._initialized
