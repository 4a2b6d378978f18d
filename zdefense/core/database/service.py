"""
Database Service - async engine and unit-of-work management.

Purpose
-------
Owns the single AsyncEngine of the process and hands out sessions. Every
mutating engine operation runs inside exactly one `get_transaction()` block;
collaborators below the service layer receive that session and never open
their own.

Responsibilities
----------------
- Initialize and dispose the AsyncEngine with connection pooling
- Provide async context managers for read sessions and atomic transactions
- Enforce transaction discipline: commit on success, rollback on any
  exception (including task cancellation)
- Configure statement timeouts for PostgreSQL sessions
- Make SQLite (aiosqlite) behave transactionally: explicit BEGIN, working
  SAVEPOINTs, foreign keys enforced
- Expose a lightweight health check
- Create the schema from model metadata

Non-Responsibilities
--------------------
- Retry policies (callers decide)
- Schema migrations
- Domain logic or event emission

Transaction Model
-----------------
- `get_transaction()` is the interface for all state mutations
- Never call `session.commit()` inside service code
- Best-effort sub-steps use `session.begin_nested()` (SAVEPOINT)

Configuration
-------------
All values come from `Config` unless passed explicitly:
DATABASE_URL, DATABASE_POOL_SIZE, DATABASE_MAX_OVERFLOW,
DATABASE_POOL_RECYCLE, DATABASE_POOL_TIMEOUT, DATABASE_STATEMENT_TIMEOUT_MS,
DATABASE_ECHO, TESTING.

Usage Example
-------------
>>> database = DatabaseService()
>>> await database.initialize()
>>> async with database.get_transaction() as session:
...     await session.execute(stmt)
...     # Automatic commit on exit
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Type

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, Pool

from zdefense.core.config.config import Config
from zdefense.core.database.base import Base
from zdefense.core.exceptions import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
)
from zdefense.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """
    Immutable snapshot of database configuration.

    Taken once at initialization so the engine has a stable view of its
    settings for its whole lifetime.
    """

    url: str
    echo: bool
    pool_class: Type[Pool]
    pool_size: int
    max_overflow: int
    pool_recycle: int
    pool_timeout: int
    statement_timeout_ms: int

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Async database engine and session management.

    Public API
    ----------
    - initialize() / shutdown()
    - get_session() -> read-only session
    - get_transaction() -> atomic write transaction
    - health_check() -> fast reachability probe
    - create_schema() / drop_schema()
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        *,
        echo: Optional[bool] = None,
        testing: Optional[bool] = None,
    ) -> None:
        self._url_override = database_url
        self._echo_override = echo
        self._testing_override = testing

        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._config_snapshot: Optional[_DatabaseConfigSnapshot] = None
        self._init_lock = asyncio.Lock()

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    def _build_config_snapshot(self) -> _DatabaseConfigSnapshot:
        database_url = self._url_override or Config.DATABASE_URL
        if not database_url or not isinstance(database_url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        is_testing = (
            self._testing_override
            if self._testing_override is not None
            else Config.is_testing()
        )
        pool_class: Type[Pool] = NullPool if is_testing else AsyncAdaptedQueuePool

        snapshot = _DatabaseConfigSnapshot(
            url=database_url,
            echo=(
                self._echo_override
                if self._echo_override is not None
                else Config.DATABASE_ECHO
            ),
            pool_class=pool_class,
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
            pool_timeout=Config.DATABASE_POOL_TIMEOUT,
            statement_timeout_ms=Config.DATABASE_STATEMENT_TIMEOUT_MS,
        )

        logger.debug(
            "Database configuration snapshot created",
            extra={
                "url_scheme": snapshot.url_scheme,
                "pool_class": pool_class.__name__,
                "pool_size": snapshot.pool_size,
                "max_overflow": snapshot.max_overflow,
                "statement_timeout_ms": snapshot.statement_timeout_ms,
                "is_testing": is_testing,
            },
        )
        return snapshot

    @staticmethod
    def _install_sqlite_hooks(engine: AsyncEngine) -> None:
        """
        Make aiosqlite transactional in the way the engine relies on.

        The driver's implicit transaction handling breaks SAVEPOINTs, so it
        is switched off and SQLAlchemy emits BEGIN itself. IMMEDIATE takes the
        write lock up front, which serializes concurrent writers instead of
        failing them on lock upgrade.
        """

        @event.listens_for(engine.sync_engine, "connect")
        def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _on_begin(conn: Any) -> None:
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    async def initialize(self) -> None:
        """
        Initialize the engine and session factory.

        Idempotent: a second call returns immediately.

        Raises:
            DatabaseInitializationError: configuration is invalid or engine
                creation fails.
        """
        async with self._init_lock:
            if self._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            logger.info("Initializing DatabaseService")

            try:
                config = self._build_config_snapshot()

                engine_kwargs: dict[str, Any] = {
                    "echo": config.echo,
                    "poolclass": config.pool_class,
                }
                if config.pool_class is AsyncAdaptedQueuePool:
                    engine_kwargs.update(
                        {
                            "pool_size": config.pool_size,
                            "max_overflow": config.max_overflow,
                            "pool_recycle": config.pool_recycle,
                            "pool_timeout": config.pool_timeout,
                            "pool_pre_ping": True,
                        }
                    )

                engine = create_async_engine(config.url, **engine_kwargs)
                if config.is_sqlite:
                    self._install_sqlite_hooks(engine)

                self._engine = engine
                self._config_snapshot = config
                self._session_factory = async_sessionmaker(
                    bind=engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )

                logger.info(
                    "DatabaseService initialized successfully",
                    extra={
                        "url_scheme": config.url_scheme,
                        "pool_class": config.pool_class.__name__,
                    },
                )

            except DatabaseInitializationError:
                raise
            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

    async def shutdown(self) -> None:
        """Dispose the engine. Safe to call more than once."""
        async with self._init_lock:
            if self._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            logger.info("Shutting down DatabaseService")
            try:
                await self._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                self._engine = None
                self._session_factory = None
                self._config_snapshot = None

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        self._ensure_initialized()
        assert self._engine is not None
        return self._engine

    # ========================================================================
    # Schema
    # ========================================================================

    async def create_schema(self) -> None:
        """Create every table registered on `Base.metadata` (if missing)."""
        import zdefense.database.models  # noqa: F401  (registers tables)

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(
            "Database schema ensured",
            extra={"table_count": len(Base.metadata.tables)},
        )

    async def drop_schema(self) -> None:
        import zdefense.database.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database schema dropped")

    # ========================================================================
    # Health Check
    # ========================================================================

    async def health_check(self) -> bool:
        """
        Execute `SELECT 1`. Returns False instead of raising on failure.
        """
        if self._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        finally:
            logger.debug(
                "Database health check completed",
                extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
            )

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    def _ensure_initialized(self) -> None:
        if self._session_factory is None or self._engine is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call initialize() during startup."
            )

    async def _apply_session_settings(self, session: AsyncSession) -> None:
        config = self._config_snapshot
        if config is not None and config.is_postgres:
            await session.execute(
                text(f"SET LOCAL statement_timeout = {config.statement_timeout_ms}")
            )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Session for read-only work. No commit is issued; the session is
        closed (and any implicit transaction discarded) on exit.
        """
        self._ensure_initialized()
        assert self._session_factory is not None

        async with self._session_factory() as session:
            await self._apply_session_settings(session)
            yield session

    @asynccontextmanager
    async def get_transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in an atomic transaction.

        Commits when the block exits normally. Any exception, including
        `asyncio.CancelledError`, rolls the whole transaction back and is
        re-raised unchanged.
        """
        self._ensure_initialized()
        assert self._session_factory is not None

        start = time.perf_counter()
        async with self._session_factory() as session:
            try:
                await self._apply_session_settings(session)
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except (OperationalError, DBAPIError) as exc:
                await session.rollback()
                logger.error(
                    f"{type(exc).__name__} in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                    exc_info=True,
                )
                raise

            except asyncio.CancelledError:
                await asyncio.shield(session.rollback())
                logger.warning(
                    "Transaction cancelled; rolled back",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )
                raise

            except Exception as exc:
                await session.rollback()
                logger.debug(
                    "Transaction rolled back",
                    extra={
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise
