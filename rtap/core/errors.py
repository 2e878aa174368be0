"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional; only the ones relevant to a given error are set.
    """

    code: str
    message: str
    hint: str
    http_status: int
    operation_id: int
    action: str
    role: str
    required_roles: list[str]
    group_ids: list[str]
    request_id: str
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
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when no authenticated principal is available."""


class AuthorizationAppError(AppError):
    """Raised when the principal is not allowed to perform an action."""


class NotFoundAppError(AppError):
    """Raised when a requested resource does not exist."""


@dataclass
class RateLimitAppError(AppError):
    """Raised when a client has exhausted its request budget.

    ``headers`` carries Retry-After and X-RateLimit-* values for the response.
    """

    headers: dict[str, str] | None = None
