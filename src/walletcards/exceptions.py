"""Exception hierarchy for the WalletCards client.

Network outcomes never raise: the gateway collapses them to ``None`` and the
workflows turn that into an explicit outcome value. The exceptions below cover
the remaining cases:

- ``ValidationError``: a user answer failed a client-side rule
- ``AuthenticationError``: the identity provider refused the credentials
- ``InvalidTransitionError``: a workflow was driven out of order
- ``ConfigurationError``: credentials or endpoints are missing

All exceptions have:
- error_code: Machine-readable error code (e.g., "VALIDATION_ERROR")
- message: Human-readable error message
- details: Optional additional context dictionary
- to_dict(): Convert to a serializable form
"""
from __future__ import annotations

from typing import Any, Optional


class WalletCardsError(Exception):
    """Base exception for all WalletCards errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Optional additional context
    """

    error_code: str = "WALLETCARDS_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable dictionary."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(WalletCardsError):
    """A value entered by the user was rejected before any network call."""

    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details)
        self.field = field


class AuthenticationError(WalletCardsError):
    """The identity provider rejected a sign-up, sign-in or reset request."""

    error_code = "AUTHENTICATION_ERROR"


class InvalidTransitionError(WalletCardsError):
    """A state machine was asked to move along an edge it does not have."""

    error_code = "INVALID_TRANSITION"

    def __init__(self, machine: str, current: str, target: str) -> None:
        super().__init__(
            f"{machine} cannot move from {current} to {target}",
            details={"machine": machine, "current": current, "target": target},
        )
        self.current = current
        self.target = target


class ConfigurationError(WalletCardsError):
    """Required settings are missing or invalid."""

    error_code = "CONFIGURATION_ERROR"


# Shown when the backend could not be reached or its answer could not be read
GENERIC_ERROR_MESSAGE = "An error occurred. Please try again."
