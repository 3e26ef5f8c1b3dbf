"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NotRequired, TypedDict

if TYPE_CHECKING:
    from app.services.rate_limit_service import Decision


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: float
    limit_class: str
    tier: str
    backend: str
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
    """Raised when input validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class ConfigurationAppError(AppError):
    """Raised at startup when static configuration is incomplete or invalid."""


class StoreUnavailableError(AppError):
    """Raised by a window store whose backend cannot be reached.

    Never surfaces to HTTP handlers: the failover store catches it and
    retries against the local store.
    """


class RateLimitExceededError(AppError):
    """Raised by the rate limit guard when a request is denied.

    Carries the decision so the handler can render the 429 body and headers.
    """

    def __init__(self, decision: "Decision", message: str | None = None) -> None:
        self.decision = decision
        super().__init__(
            code="rate_limit_exceeded",
            message=message
            or (
                "Too many requests. Please try again in "
                f"{decision.retry_after_seconds} seconds."
            ),
            details={"retry_after": float(decision.retry_after_seconds or 0)},
        )
