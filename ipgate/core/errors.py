"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error type only carries what applies to it.
    """

    hint: str
    note: str
    identifier: str
    banned_at: str
    reason: str
    limit: int
    window_ms: int
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when client input is missing or malformed."""


class AuthenticationAppError(AppError):
    """Raised when the admin secret is missing or wrong."""


class ConfigurationAppError(AppError):
    """Raised when the server lacks configuration an operation requires."""


class NotFoundAppError(AppError):
    """Raised when the requested resource does not exist."""


class BannedAppError(AppError):
    """Raised when a request comes from an identifier on the ban list."""


class RateLimitAppError(AppError):
    """Raised when a request pushes its identifier over the rate limit."""
