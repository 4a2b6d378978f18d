"""
Domain exceptions for the progression engine.

Purpose
-------
Define the structured, domain-specific exception hierarchy. Services raise
these for business rule violations, resource constraints and loot
configuration problems; the handler layer maps them to responses through
`ErrorResponseService` and returns them to the caller unmodified.

Design Notes
------------
- All domain exceptions inherit from `ZDDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Kinds group concrete classes: every not-found error is a `NotFoundError`,
  every loot configuration problem is a `LootConfigurationError`, and
  `InvalidStatsError` is a `ValidationError`.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from zdefense.core.exceptions import ErrorSeverity


class ZDDomainException(Exception):
    """
    Base exception for all domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise ZDDomainException(
        ...     "Purchase failed",
        ...     {"reason": "catalog item retired"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


# ============================================================================
# Not Found
# ============================================================================


class NotFoundError(ZDDomainException):
    """
    Raised when a requested resource cannot be found.

    Args:
        resource_type: Type of resource (e.g., "Cosmetic", "LootTable")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={
                "resource_type": resource_type,
                "identifier": identifier,
            },
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class CosmeticNotFoundError(NotFoundError):
    def __init__(self, cosmetic_id: int) -> None:
        self.cosmetic_id = cosmetic_id
        super().__init__("Cosmetic", cosmetic_id)


class LootTableNotFoundError(NotFoundError):
    def __init__(self, loot_table_id: int) -> None:
        self.loot_table_id = loot_table_id
        super().__init__("LootTable", loot_table_id)


class LootTableEntryNotFoundError(NotFoundError):
    def __init__(self, entry_id: int) -> None:
        self.entry_id = entry_id
        super().__init__("LootTableEntry", entry_id)


class LoadoutNotFoundError(NotFoundError):
    def __init__(self, loadout_id: int) -> None:
        self.loadout_id = loadout_id
        super().__init__("Loadout", loadout_id)


# ============================================================================
# Ownership
# ============================================================================


class CosmeticAlreadyOwnedError(ZDDomainException):
    """
    Raised when a player tries to buy a cosmetic they already own.

    Also raised when the ownership insert of a purchase finds the row already
    present (a concurrent grant won the race); the purchase debit is rolled
    back with it.
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, player_id: int, cosmetic_id: int) -> None:
        self.player_id = player_id
        self.cosmetic_id = cosmetic_id
        super().__init__(
            f"Player {player_id} already owns cosmetic {cosmetic_id}",
            details={"player_id": player_id, "cosmetic_id": cosmetic_id},
            error_code="COSMETIC_ALREADY_OWNED",
        )


class CosmeticNotOwnedError(ZDDomainException):
    """Raised when a player tries to equip a cosmetic they do not own."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, player_id: int, cosmetic_id: int) -> None:
        self.player_id = player_id
        self.cosmetic_id = cosmetic_id
        super().__init__(
            f"Player {player_id} does not own cosmetic {cosmetic_id}",
            details={"player_id": player_id, "cosmetic_id": cosmetic_id},
            error_code="COSMETIC_NOT_OWNED",
        )


# ============================================================================
# Resources & Validation
# ============================================================================


class InsufficientCurrencyError(ZDDomainException):
    """
    Raised when a debit would take a player's balance below zero.

    The balance is left untouched when this is raised.

    Args:
        player_id: Player being debited
        required: Amount the debit needs
        current: Balance at the time of the attempt
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, player_id: int, required: int, current: int) -> None:
        self.player_id = player_id
        self.required = required
        self.current = current
        super().__init__(
            f"Insufficient currency: need {required:,}, have {current:,}",
            details={
                "player_id": player_id,
                "required": required,
                "current": current,
                "deficit": required - current,
            },
            error_code="INSUFFICIENT_CURRENCY",
        )


class ValidationError(ZDDomainException):
    """
    Raised when input fails domain validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        error_message = f"Validation error for {field}: {message}"
        super().__init__(
            error_message,
            details={
                "field": field,
                "validation_message": message,
            },
            error_code=f"VALIDATION_{field.upper()}",
        )


class InvalidStatsError(ValidationError):
    """Raised when match statistics are negative or otherwise malformed."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(field, message)
        self.error_code = "INVALID_STATS"


# ============================================================================
# Loot Configuration
# ============================================================================


class LootConfigurationError(ZDDomainException):
    """
    Base class for loot tables that cannot produce a drop.

    These describe catalog/configuration state rather than player input, so
    they are logged at WARNING.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = False


class NoActiveLootTablesError(LootConfigurationError):
    def __init__(self) -> None:
        super().__init__(
            "No active loot tables are configured",
            error_code="NO_ACTIVE_LOOT_TABLES",
        )


class NoDropFromAnyTableError(LootConfigurationError):
    """Every active table's drop roll missed."""

    def __init__(self, tables_rolled: int) -> None:
        self.tables_rolled = tables_rolled
        super().__init__(
            "No loot table produced a drop",
            details={"tables_rolled": tables_rolled},
            error_code="NO_DROP_FROM_ANY_TABLE",
        )


class EmptyLootTableError(LootConfigurationError):
    def __init__(self, loot_table_id: Optional[int]) -> None:
        self.loot_table_id = loot_table_id
        super().__init__(
            f"Loot table {loot_table_id} has no entries",
            details={"loot_table_id": loot_table_id},
            error_code="EMPTY_LOOT_TABLE",
        )


class NonPositiveWeightError(LootConfigurationError):
    def __init__(self, loot_table_id: Optional[int], total_weight: int) -> None:
        self.loot_table_id = loot_table_id
        self.total_weight = total_weight
        super().__init__(
            f"Loot table {loot_table_id} has non-positive total weight {total_weight}",
            details={"loot_table_id": loot_table_id, "total_weight": total_weight},
            error_code="NON_POSITIVE_WEIGHT",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """
    Check if an exception represents a transient error that can be retried.

    Args:
        exc: Exception to check

    Returns:
        True if error is retryable, False otherwise.
    """
    if isinstance(exc, ZDDomainException):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """
    Get the severity level of an exception for logging.

    Args:
        exc: Exception to check

    Returns:
        ErrorSeverity level.
    """
    if isinstance(exc, ZDDomainException):
        return exc.severity
    return ErrorSeverity.ERROR
