"""
Dialect-aware INSERT construction.

`INSERT ... ON CONFLICT` is the engine's idempotency primitive: DO NOTHING for
lazy row creation and ownership grants, DO UPDATE for loadout slot writes.
SQLAlchemy exposes it per dialect, so the statement class is chosen from the
session's bound engine.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_name(session: AsyncSession) -> str:
    return session.get_bind().dialect.name


def upsert_insert(session: AsyncSession, model: Any):
    """
    Return an INSERT for `model` that supports `on_conflict_do_nothing` and
    `on_conflict_do_update`.

    Raises:
        NotImplementedError: The session is bound to an unsupported backend.
    """
    name = dialect_name(session)
    try:
        factory = _INSERTS[name]
    except KeyError:
        raise NotImplementedError(
            f"ON CONFLICT inserts are not supported for dialect '{name}'"
        ) from None
    return factory(model)
