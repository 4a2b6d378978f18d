"""
Base Repository Pattern

Purpose
-------
Type-safe, generic repository abstraction following SQLAlchemy 2.0 async
patterns. Repositories encapsulate data access and take the caller's session
as their first argument; they never open, commit or roll back a transaction.

Design Notes
------------
This base repository provides:
- Lookup by primary key and by arbitrary conditions
- Ordered multi-row reads
- Existence/counting utilities
- Structured debug logging for every query

What this class does NOT do:
- Manage transactions (services/DatabaseService handle that)
- Contain business logic

Usage
-----
    class LootTableRepository(BaseRepository[LootTable]):
        async def list_active(self, session: AsyncSession) -> list[LootTable]:
            return await self.find_many_where(
                session,
                LootTable.is_active.is_(True),
                order_by=[LootTable.id],
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository for type-safe database operations.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """
        Get a single record by primary key (no lock).

        Composite keys are passed as a tuple in primary key column order.
        """
        instance = await session.get(self.model_class, id_value)

        self.log.debug(
            f"Repository.get: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": id_value,
                "found": instance is not None,
            },
        )

        return instance

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        `for_update` adds SELECT ... FOR UPDATE (ignored by SQLite, where the
        writer lock is taken at BEGIN).
        """
        stmt = select(self.model_class).where(*conditions)

        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found": instance is not None,
                "locked": for_update,
            },
        )

        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        """Find multiple records matching conditions."""
        stmt = select(self.model_class).where(*conditions)

        if order_by:
            stmt = stmt.order_by(*order_by)

        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found_count": len(instances),
                "limit": limit,
            },
        )

        return instances

    async def exists(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> bool:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = result.scalar_one()

        self.log.debug(
            f"Repository.exists: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "exists": count > 0,
            },
        )

        return count > 0

    async def count(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = result.scalar_one()

        self.log.debug(
            f"Repository.count: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "count": count,
            },
        )

        return count

    async def add(self, session: AsyncSession, instance: T) -> T:
        """
        Add a new instance and flush so generated keys are populated.
        """
        session.add(instance)
        await session.flush()

        self.log.debug(
            f"Repository.add: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
            },
        )

        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        await session.delete(instance)
        await session.flush()

        self.log.debug(
            f"Repository.delete: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
            },
        )
