"""
Base Service Foundation

Purpose
-------
Provides the foundational class for all domain services of the progression
engine. Services implement pure business logic, open the unit of work,
enforce business rules and emit domain events after commit.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Event emission helpers
- Validation error wrapping
- Conversion of storage errors into `StorageFailureError`

What this class does NOT do:
- Commit or roll back (DatabaseService.get_transaction() owns that)
- Retry failed operations
- Contain game-specific logic

Usage
-----
    class CosmeticService(BaseService):
        async def purchase_cosmetic(self, player_id: int, cosmetic_id: int):
            self.log_operation("purchase_cosmetic", player_id=player_id)
            with self.storage_errors("purchase_cosmetic", player_id=player_id):
                async with self.db.get_transaction() as session:
                    ...
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError

from zdefense.core.exceptions import ConfigurationError, StorageFailureError
from .exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from zdefense.core.config.manager import ConfigManager
    from zdefense.core.database.service import DatabaseService
    from zdefense.core.event.bus import EventBus


class BaseService:
    """
    Base class for all domain services.

    Args:
        database: Database service providing sessions and transactions
        config_manager: Game-balance configuration manager
        event_bus: Event bus for cross-module communication
        logger: Structured logger instance
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self.db = database
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Safely retrieve configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Emit a domain event. Call only after the transaction has committed.
        """
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(
        self,
        operation: str,
        error: Exception,
        **context: Any,
    ) -> None:
        self.log.error(
            f"Service error during {operation}: {str(error)}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
            exc_info=error,
        )

    @contextmanager
    def storage_errors(self, operation: str, **context: Any) -> Iterator[None]:
        """
        Surface SQLAlchemy failures as `StorageFailureError`.

        Domain exceptions pass through untouched. The wrapped transaction has
        already rolled back by the time the error reaches this block.
        """
        try:
            yield
        except SQLAlchemyError as exc:
            self.log_error(operation, exc, **context)
            raise StorageFailureError(
                operation, exc, player_id=context.get("player_id")
            ) from exc

    def validate_positive_int(self, value: int, name: str) -> None:
        """
        Validate that a value is a positive integer.

        Raises:
            ValidationError: If value is not positive
        """
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ValidationError(
                name, f"{name} must be a positive integer, got {value}"
            )

    def validate_range(
        self, value: float, name: str, min_val: float, max_val: float
    ) -> None:
        """
        Validate that a value is within a specified range (inclusive).

        Raises:
            ValidationError: If value is out of range
        """
        if not (min_val <= value <= max_val):
            raise ValidationError(
                name,
                f"{name} must be between {min_val} and {max_val}, got {value}",
            )
