"""
Unit tests for ErrorResponseService and the exception hierarchy.

Checks that every exception kind maps to its status code and that internal
failures never leak details.
"""

import pytest
from sqlalchemy.exc import OperationalError

from zdefense.core.exceptions import ConfigurationError, StorageFailureError
from zdefense.core.services.error_response_service import ErrorResponseService
from zdefense.modules.shared.exceptions import (
    CosmeticAlreadyOwnedError,
    CosmeticNotFoundError,
    CosmeticNotOwnedError,
    EmptyLootTableError,
    ErrorSeverity,
    InsufficientCurrencyError,
    InvalidStatsError,
    LoadoutNotFoundError,
    LootTableEntryNotFoundError,
    LootTableNotFoundError,
    NoActiveLootTablesError,
    NoDropFromAnyTableError,
    NonPositiveWeightError,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def error_service():
    return ErrorResponseService()


@pytest.mark.unit
class TestStatusMapping:
    """Each exception kind maps to one status code."""

    @pytest.mark.parametrize(
        "error, status",
        [
            (CosmeticNotFoundError(5), 404),
            (LootTableNotFoundError(5), 404),
            (LootTableEntryNotFoundError(5), 404),
            (LoadoutNotFoundError(5), 404),
            (CosmeticAlreadyOwnedError(1, 5), 409),
            (CosmeticNotOwnedError(1, 5), 403),
            (InsufficientCurrencyError(1, 150, 100), 402),
            (ValidationError("name", "too long"), 400),
            (InvalidStatsError("kills", "must be non-negative, got -1"), 400),
            (NoActiveLootTablesError(), 503),
            (NoDropFromAnyTableError(3), 503),
            (EmptyLootTableError(2), 503),
            (NonPositiveWeightError(2, 0), 503),
        ],
    )
    def test_domain_statuses(self, error_service, error, status):
        response = error_service.build_response(error)

        assert response["status"] == status
        assert response["error_code"] == error.error_code

    def test_insufficient_currency_message(self, error_service):
        response = error_service.build_response(InsufficientCurrencyError(1, 1500, 200))

        assert response["description"] == (
            "You need 1,500 currency, but you only have 200."
        )
        assert response["details"]["deficit"] == 1300

    def test_specific_template_wins_over_base(self, error_service):
        """CosmeticNotFoundError has its own wording; other NotFound use the base."""
        cosmetic = error_service.build_response(CosmeticNotFoundError(9))
        loadout = error_service.build_response(LoadoutNotFoundError(9))

        assert cosmetic["title"] == "Cosmetic Not Found"
        assert loadout["title"] == "Not Found"
        assert loadout["description"] == "Loadout not found."


@pytest.mark.unit
class TestInternalErrors:
    """Storage and unknown failures are generic."""

    def test_storage_failure_is_generic(self, error_service):
        original = OperationalError("UPDATE player_progression", {}, Exception("disk I/O"))
        error = StorageFailureError("purchase_cosmetic", original, player_id=42)

        response = error_service.build_response(error)

        assert response["status"] == 500
        assert "disk" not in response["description"]
        assert response["details"] == {}

    def test_configuration_error_is_generic(self, error_service):
        response = error_service.build_response(
            ConfigurationError("progression.base_xp_per_level", "missing")
        )

        assert response["status"] == 500
        assert response["details"] == {}

    def test_unknown_exception(self, error_service):
        response = error_service.build_response(KeyError("secret internals"))

        assert response["status"] == 500
        assert response["error_code"] == "INTERNAL_ERROR"
        assert "secret" not in response["description"]


@pytest.mark.unit
class TestExceptionHierarchy:
    def test_kinds(self):
        assert isinstance(CosmeticNotFoundError(1), NotFoundError)
        assert isinstance(InvalidStatsError("kills", "bad"), ValidationError)

    def test_invalid_stats_code(self):
        assert InvalidStatsError("kills", "bad").error_code == "INVALID_STATS"

    def test_severities(self):
        assert NoActiveLootTablesError().severity is ErrorSeverity.WARNING
        assert CosmeticNotFoundError(1).severity is ErrorSeverity.INFO

    def test_to_dict(self):
        data = InsufficientCurrencyError(7, 150, 100).to_dict()

        assert data["error_type"] == "InsufficientCurrencyError"
        assert data["error_code"] == "INSUFFICIENT_CURRENCY"
        assert data["details"]["required"] == 150
        assert data["is_retryable"] is False

    def test_storage_failure_is_retryable(self):
        original = OperationalError("SELECT 1", {}, Exception("timeout"))
        error = StorageFailureError("get_balance", original, player_id=3)

        assert error.is_retryable is True
