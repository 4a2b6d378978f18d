"""
Error Response Service for the progression engine.

Purpose
-------
Centralized mapping of domain and infrastructure exceptions into the
response structure the handler layer returns to clients.

Responsibilities
----------------
- Map exception kinds to status codes through the RESPONSE_TEMPLATES registry
- Interpolate exception details into client-facing messages
- Hide storage and unexpected failures behind a generic message
- Log each mapped error once, at the level its severity calls for

Non-Responsibilities
--------------------
- Exception creation or domain logic
- HTTP routing or serialization

Architecture Notes
------------------
Templates are looked up along the exception's MRO, so a concrete class such
as `CosmeticNotFoundError` can carry its own wording while every other
`NotFoundError` falls back to the generic not-found template.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from zdefense.core.exceptions import (
    ConfigurationError,
    StorageFailureError,
    ZDInfrastructureException,
)
from zdefense.core.logging.logger import get_logger
from zdefense.modules.shared.exceptions import (
    CosmeticAlreadyOwnedError,
    CosmeticNotFoundError,
    CosmeticNotOwnedError,
    ErrorSeverity,
    InsufficientCurrencyError,
    InvalidStatsError,
    LootConfigurationError,
    NotFoundError,
    ValidationError,
    ZDDomainException,
)

logger = get_logger(__name__)

GENERIC_ERROR_MESSAGE = "An internal error occurred. Please try again later."

_SEVERITY_LOG_LEVELS = {
    ErrorSeverity.DEBUG: logging.DEBUG,
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


class ResponseTemplate:
    """Template for one exception kind."""

    def __init__(
        self,
        status: int,
        title: str,
        template: str,
        expose_details: bool = True,
    ):
        self.status = status
        self.title = title
        self.template = template
        self.expose_details = expose_details

    def format(self, exception: Exception) -> Dict[str, Any]:
        details: Dict[str, Any] = {}
        if isinstance(exception, (ZDDomainException, ZDInfrastructureException)):
            details = dict(exception.details)

        try:
            description = self.template.format(**details)
        except (KeyError, IndexError, ValueError):
            description = getattr(exception, "message", str(exception))

        return {
            "status": self.status,
            "title": self.title,
            "description": description,
            "error_code": getattr(exception, "error_code", "INTERNAL_ERROR"),
            "details": details if self.expose_details else {},
        }


# ============================================================================
# RESPONSE TEMPLATE REGISTRY
# ============================================================================

RESPONSE_TEMPLATES: Dict[type, ResponseTemplate] = {
    # Domain Exceptions
    NotFoundError: ResponseTemplate(
        status=404,
        title="Not Found",
        template="{resource_type} not found.",
    ),
    CosmeticNotFoundError: ResponseTemplate(
        status=404,
        title="Cosmetic Not Found",
        template="Cosmetic {identifier} does not exist.",
    ),
    CosmeticAlreadyOwnedError: ResponseTemplate(
        status=409,
        title="Already Owned",
        template="You already own cosmetic {cosmetic_id}.",
    ),
    CosmeticNotOwnedError: ResponseTemplate(
        status=403,
        title="Not Owned",
        template="You do not own cosmetic {cosmetic_id}.",
    ),
    InsufficientCurrencyError: ResponseTemplate(
        status=402,
        title="Insufficient Currency",
        template="You need {required:,} currency, but you only have {current:,}.",
    ),
    ValidationError: ResponseTemplate(
        status=400,
        title="Invalid Input",
        template="{field}: {validation_message}",
    ),
    InvalidStatsError: ResponseTemplate(
        status=400,
        title="Invalid Match Statistics",
        template="{field}: {validation_message}",
    ),
    LootConfigurationError: ResponseTemplate(
        status=503,
        title="Loot Unavailable",
        template="No loot could be generated right now.",
        expose_details=False,
    ),
    # Infrastructure Exceptions
    StorageFailureError: ResponseTemplate(
        status=500,
        title="Internal Error",
        template=GENERIC_ERROR_MESSAGE,
        expose_details=False,
    ),
    ConfigurationError: ResponseTemplate(
        status=500,
        title="Internal Error",
        template=GENERIC_ERROR_MESSAGE,
        expose_details=False,
    ),
}

_FALLBACK_TEMPLATE = ResponseTemplate(
    status=500,
    title="Internal Error",
    template=GENERIC_ERROR_MESSAGE,
    expose_details=False,
)


def get_response_template(exception: Exception) -> Optional[ResponseTemplate]:
    """Closest registered template along the exception's class hierarchy."""
    for klass in type(exception).__mro__:
        template = RESPONSE_TEMPLATES.get(klass)
        if template is not None:
            return template
    return None


def get_severity(exception: Exception) -> ErrorSeverity:
    if isinstance(exception, (ZDDomainException, ZDInfrastructureException)):
        return exception.severity
    return ErrorSeverity.ERROR


class ErrorResponseService:
    """
    Service for turning exceptions into handler responses.

    Example:
        >>> response = ErrorResponseService().build_response(
        ...     InsufficientCurrencyError(42, 150, 100)
        ... )
        >>> response["status"]
        402
    """

    def build_response(self, error: Exception) -> Dict[str, Any]:
        """
        Build the response for `error` and log it.

        Returns:
            Dict containing status, title, description, error_code, details
        """
        template = get_response_template(error)
        if template is None:
            response = self._format_fallback_error(error)
        else:
            response = template.format(error)

        severity = get_severity(error)
        logger.log(
            _SEVERITY_LOG_LEVELS[severity],
            f"Responding with {response['status']}: {type(error).__name__}",
            extra={
                "status": response["status"],
                "error_code": response["error_code"],
                "error_type": type(error).__name__,
            },
            exc_info=error if response["status"] >= 500 else None,
        )
        return response

    def _format_fallback_error(self, error: Exception) -> Dict[str, Any]:
        """Unknown exception types never leak their message."""
        response = _FALLBACK_TEMPLATE.format(error)
        response["error_code"] = "INTERNAL_ERROR"
        return response
