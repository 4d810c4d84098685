"""Application-level exception types.

Handlers and utilities raise these instead of building HTTP responses by
hand; ``marketplace.core.exception_handlers`` maps them to status codes and a
single JSON error shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    errors: list[str]
    field: str
    resource: str
    resource_id: str
    retry_after: int
    route_prefix: str
    context: dict[str, Any]


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
    """Raised when request payload validation fails."""


class NotFoundAppError(AppError):
    """Raised when a requested listing, booking or user does not exist."""


class RateLimitAppError(AppError):
    """Raised by handlers that enforce an additional, action-level quota."""
