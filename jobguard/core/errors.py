"""Application-level exception types.

Domain errors shared by adapters, services and the HTTP layer. The throttle
tracker and TTL cache catch storage errors themselves; these types surface
only through the storage adapters, the rate limit dependency and the routes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    field: str
    preset: str
    backend: str
    quota_bytes: int
    required_bytes: int
    retry_after: int
    wait_ms: int
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
    """Raised when authentication/authorization fails."""


class StorageAppError(AppError):
    """Raised by key/value stores when the backend cannot be read or written."""


class StorageQuotaExceededError(StorageAppError):
    """Raised when a write would push the store past its byte quota."""


@dataclass
class RateLimitAppError(AppError):
    """Raised when a caller exceeds a server-side rate limit preset.

    Attributes:
        headers: Retry-After and X-RateLimit-* headers for the 429 response.
    """

    headers: dict[str, str] = field(default_factory=dict)
