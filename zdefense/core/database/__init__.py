"""
Database subsystem for the progression engine.

Provides the async SQLAlchemy engine, unit-of-work session management and
health checks, plus the ORM base classes and mixins for model definitions.
"""

from zdefense.core.database.base import (
    Base,
    IdMixin,
    TimestampMixin,
    utcnow,
)
from zdefense.core.database.dialect import dialect_name, upsert_insert
from zdefense.core.database.service import DatabaseService
from zdefense.core.exceptions import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "IdMixin",
    "TimestampMixin",
    "utcnow",
    # Main service
    "DatabaseService",
    # Dialect helpers
    "dialect_name",
    "upsert_insert",
    # Exceptions
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
