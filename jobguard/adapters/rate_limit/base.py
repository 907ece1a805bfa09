"""Request budget interface used by the HTTP rate limit dependency.

Budgets are counted per opaque key (``<preset>:api_key:<key>`` or
``<preset>:ip:<address>``); a limiter only knows about keys and windows.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of charging one request against a key's budget.

    ``reset_at`` is in UNIX epoch seconds; ``retry_after_seconds`` is only
    set when the request was refused.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None

    def to_headers(self) -> dict[str, str]:
        """Response headers advertising the budget (``Retry-After`` when refused)."""

        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after_seconds or 0)
        return headers


class AbstractRateLimiter(ABC):
    @abstractmethod
    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Charge ``cost`` units to ``key`` and report whether it fit."""
        raise NotImplementedError
