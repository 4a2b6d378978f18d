"""
Pytest Configuration and Fixtures for the progression engine tests
===================================================================

Purpose
-------
Centralized test fixtures for the test suite: database, configuration,
event bus, services and catalog factories.

Responsibilities
----------------
- Fresh database per integration test (SQLite file by default, PostgreSQL
  testcontainer when ZD_TEST_DATABASE=postgres)
- Real ConfigManager / EventBus instances plus mocks for unit tests
- ServiceContainer wired against the test database
- Factories for catalog data (cosmetics, loot tables)

Architecture Notes
------------------
- Unit tests use mocks or pure functions (fast, isolated)
- Integration tests run services end to end against a real database
- Every integration test starts from an empty schema
"""

from __future__ import annotations

import functools
import os
import random
from typing import Any, AsyncGenerator, Dict, Generator, List, Tuple

import pytest
import pytest_asyncio

from zdefense.core.config import Config
from zdefense.core.config.manager import ConfigManager
from zdefense.core.database.service import DatabaseService
from zdefense.core.event import events
from zdefense.core.event.bus import EventBus
from zdefense.core.logging.logger import get_logger
from zdefense.core.services.container import ServiceContainer
from zdefense.database.models import (
    CosmeticItem,
    CosmeticRarity,
    CosmeticSlot,
    LootTable,
    LootTableEntry,
)

logger = get_logger(__name__)

ALL_EVENTS = (
    events.MATCH_REWARDED,
    events.LEVEL_UP,
    events.PRESTIGED,
    events.CURRENCY_CHANGED,
    events.COSMETIC_GRANTED,
    events.COSMETIC_EQUIPPED,
    events.LOADOUT_ACTIVATED,
    events.LOOT_DROPPED,
)


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure the test environment."""
    os.environ["ENVIRONMENT"] = "testing"
    os.environ["TESTING"] = "true"
    os.environ.setdefault("LOG_LEVEL", "DEBUG")
    Config.load()


def _use_postgres() -> bool:
    return os.environ.get("ZD_TEST_DATABASE", "sqlite").lower() == "postgres"


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[Any, None, None]:
    """
    Start a PostgreSQL testcontainer.

    Scope: session (container persists across all tests)
    Uses: Integration tests when ZD_TEST_DATABASE=postgres
    """
    from testcontainers.postgres import PostgresContainer

    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    container.start()

    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture
def database_url(request, tmp_path) -> str:
    """
    Connection URL for the test database.

    SQLite: a new file per test under tmp_path.
    PostgreSQL: the shared testcontainer (schema is recreated per test).
    """
    if _use_postgres():
        container = request.getfixturevalue("postgres_container")
        return container.get_connection_url()
    return f"sqlite+aiosqlite:///{tmp_path / 'zdefense_test.db'}"


@pytest_asyncio.fixture
async def database(database_url: str) -> AsyncGenerator[DatabaseService, None]:
    """
    Initialized DatabaseService on an empty schema.

    Scope: function (clean slate per test)
    """
    service = DatabaseService(database_url, testing=True)
    await service.initialize()
    if _use_postgres():
        await service.drop_schema()
    await service.create_schema()

    yield service

    await service.shutdown()


# ============================================================================
# CONFIG / EVENT FIXTURES
# ============================================================================


@pytest.fixture
def config_manager() -> ConfigManager:
    """ConfigManager holding the built-in defaults only."""
    return ConfigManager()


@pytest.fixture
def event_bus(config_manager: ConfigManager) -> EventBus:
    return EventBus(config_manager)


class EventRecorder:
    """Collects every engine event published on a bus, in order."""

    def __init__(self, bus: EventBus) -> None:
        self.published: List[Tuple[str, Dict[str, Any]]] = []
        for event_name in ALL_EVENTS:
            bus.subscribe(
                event_name,
                functools.partial(self._record, event_name),
                identifier=f"test-recorder@{event_name}",
            )

    def _record(self, event_name: str, payload: Dict[str, Any]) -> None:
        self.published.append((event_name, dict(payload)))

    def names(self) -> List[str]:
        return [name for name, _ in self.published]

    def payloads(self, event_name: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.published if name == event_name]


@pytest.fixture
def recorded_events(event_bus: EventBus) -> EventRecorder:
    return EventRecorder(event_bus)


# ============================================================================
# SERVICE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def services(
    database: DatabaseService,
    config_manager: ConfigManager,
    event_bus: EventBus,
) -> AsyncGenerator[ServiceContainer, None]:
    """
    Fully wired ServiceContainer against the test database.

    Loot drops use a seeded random source.
    """
    container = ServiceContainer(
        database=database,
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("tests.services"),
        rng=random.Random(1234),
    )
    await container.initialize()

    yield container

    await container.shutdown()


# ============================================================================
# FACTORIES
# ============================================================================


@pytest.fixture
def make_cosmetic(database: DatabaseService):
    """
    Factory inserting a catalog cosmetic.

    Usage:
        hat = await make_cosmetic(currency_cost=150)
    """
    counter = {"n": 0}

    async def _make(**overrides: Any) -> CosmeticItem:
        counter["n"] += 1
        values: Dict[str, Any] = {
            "name": f"Cosmetic {counter['n']}",
            "slot": CosmeticSlot.CHARACTER_SKIN,
            "rarity": CosmeticRarity.COMMON,
            "unlock_level": 0,
            "currency_cost": 0,
            "is_prestige_only": False,
        }
        values.update(overrides)
        async with database.get_transaction() as session:
            cosmetic = CosmeticItem(**values)
            session.add(cosmetic)
            await session.flush()
        return cosmetic

    return _make


@pytest.fixture
def make_loot_table(database: DatabaseService):
    """
    Factory inserting a loot table with (cosmetic_id, weight) entries.

    Usage:
        table = await make_loot_table([(hat.id, 1), (cape.id, 3)], drop_chance=1.0)
    """
    counter = {"n": 0}

    async def _make(
        entries: List[Tuple[int, int]],
        drop_chance: float = 1.0,
        is_active: bool = True,
    ) -> LootTable:
        counter["n"] += 1
        async with database.get_transaction() as session:
            table = LootTable(
                name=f"Loot Table {counter['n']}",
                drop_chance=drop_chance,
                is_active=is_active,
            )
            session.add(table)
            await session.flush()
            for cosmetic_id, weight in entries:
                session.add(
                    LootTableEntry(
                        loot_table_id=table.id,
                        cosmetic_id=cosmetic_id,
                        weight=weight,
                        min_quantity=1,
                        max_quantity=1,
                    )
                )
            await session.flush()
        return table

    return _make


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_database_service(mocker):
    """
    Mock DatabaseService for unit tests.

    Scope: function
    """
    mock_service = mocker.MagicMock()
    mock_service.get_transaction = mocker.MagicMock()
    mock_service.get_session = mocker.MagicMock()
    mock_service.health_check = mocker.AsyncMock(return_value=True)
    return mock_service


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus for unit tests.

    Scope: function
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock()
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def mock_config_manager(mocker):
    """
    Mock ConfigManager for unit tests.

    Scope: function
    """
    mock_config = mocker.MagicMock()
    mock_config.get = mocker.MagicMock(return_value=None)
    mock_config.get_int = mocker.MagicMock(side_effect=lambda key, default: default)
    mock_config.get_float = mocker.MagicMock(side_effect=lambda key, default: default)
    return mock_config
