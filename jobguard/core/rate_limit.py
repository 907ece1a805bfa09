"""Server-side rate limiting dependency for FastAPI routes.

Wires the rate limiting adapter into the HTTP layer with named presets.

Design goals:
- Minimal coupling: routes depend on a dependency function only.
- Swap-friendly: the limiter sits behind ``AbstractRateLimiter``.
- One limiter per preset, owned by the application (``app.state``).

Keying: per API key when present, otherwise per client IP (first
``X-Forwarded-For`` hop, then ``X-Real-IP``, then the peer address).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated, Awaitable, Callable

from fastapi import Header, Request

from jobguard.adapters.rate_limit.base import AbstractRateLimiter
from jobguard.adapters.rate_limit.in_memory import InMemoryRateLimiter
from jobguard.core.config import settings
from jobguard.core.errors import RateLimitAppError, ValidationAppError
from jobguard.core.logging import hash_for_logs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPreset:
    """Request budget for a family of routes."""

    max_requests: int
    window_seconds: int
    message: str


RATE_LIMIT_PRESETS: dict[str, RateLimitPreset] = {
    "auth": RateLimitPreset(
        max_requests=5,
        window_seconds=15 * 60,
        message="Trop de tentatives de connexion. Veuillez réessayer dans 15 minutes.",
    ),
    "register": RateLimitPreset(
        max_requests=3,
        window_seconds=60 * 60,
        message="Trop de tentatives d'inscription. Veuillez réessayer plus tard.",
    ),
    "password_reset": RateLimitPreset(
        max_requests=3,
        window_seconds=60 * 60,
        message="Trop de demandes de réinitialisation. Veuillez réessayer plus tard.",
    ),
    "standard": RateLimitPreset(
        max_requests=60,
        window_seconds=60,
        message="Trop de requêtes. Veuillez patienter.",
    ),
    "strict": RateLimitPreset(
        max_requests=10,
        window_seconds=60,
        message="Limite de requêtes atteinte. Veuillez patienter.",
    ),
    "upload": RateLimitPreset(
        max_requests=20,
        window_seconds=60 * 60,
        message="Limite d'upload atteinte. Veuillez réessayer plus tard.",
    ),
    "ai_parsing": RateLimitPreset(
        max_requests=10,
        window_seconds=60 * 60,
        message="Limite de parsing IA atteinte. Veuillez réessayer plus tard.",
    ),
}


def get_preset(name: str) -> RateLimitPreset:
    """Look up a preset by name.

    Raises:
        ValidationAppError: If the preset does not exist.
    """

    try:
        return RATE_LIMIT_PRESETS[name]
    except KeyError:
        raise ValidationAppError(
            code="unknown_rate_limit_preset",
            message=f"Unknown rate limit preset: {name}",
            details={"preset": name, "hint": ", ".join(sorted(RATE_LIMIT_PRESETS))},
        ) from None


class RateLimiterRegistry:
    """Lazily built limiter per preset, kept for the application's lifetime."""

    def __init__(self, factory: Callable[[RateLimitPreset], AbstractRateLimiter] | None = None) -> None:
        self._factory = factory or (
            lambda preset: InMemoryRateLimiter(
                limit=preset.max_requests,
                window_seconds=preset.window_seconds,
            )
        )
        self._limiters: dict[str, AbstractRateLimiter] = {}

    def get(self, preset_name: str) -> AbstractRateLimiter:
        limiter = self._limiters.get(preset_name)
        if limiter is None:
            limiter = self._factory(get_preset(preset_name))
            self._limiters[preset_name] = limiter
        return limiter


def client_ip(request: Request) -> str:
    """Best-effort client address behind reverse proxies."""

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def _build_rate_limit_key(request: Request, preset_name: str, x_api_key: str | None) -> str:
    if x_api_key:
        return f"{preset_name}:api_key:{x_api_key}"
    return f"{preset_name}:ip:{client_ip(request)}"


def _registry(request: Request) -> RateLimiterRegistry:
    registry = getattr(request.app.state, "rate_limiters", None)
    if registry is None:
        registry = RateLimiterRegistry()
        request.app.state.rate_limiters = registry
    return registry


def _consume(request: Request, preset_name: str, x_api_key: str | None) -> None:
    """Consume one unit of ``preset_name`` for the caller.

    Raises:
        RateLimitAppError: When the caller is over budget.
    """

    preset = get_preset(preset_name)
    limiter = _registry(request).get(preset_name)
    key = _build_rate_limit_key(request, preset_name, x_api_key)
    key_hash = hash_for_logs(key)
    key_type = "api_key" if x_api_key else "ip"

    result = limiter.consume(key)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "preset": preset_name,
                "key_type": key_type,
                "key_hash": key_hash,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "preset": preset_name,
            "key_type": key_type,
            "key_hash": key_hash,
            "limit": result.limit,
            "window_s": preset.window_seconds,
            "retry_after_s": retry_after,
        },
    )

    headers = result.to_headers() if settings.app.rate_limit_include_headers else {}

    raise RateLimitAppError(
        code="rate_limit_exceeded",
        message=preset.message,
        details={"preset": preset_name, "retry_after": retry_after},
        headers=headers,
    )


def rate_limit(preset_name: str) -> Callable[..., Awaitable[None]]:
    """Build a dependency enforcing ``preset_name`` on a route.

    Usage:
        @router.delete("/thing", dependencies=[Depends(rate_limit("strict"))])
    """

    get_preset(preset_name)

    async def _dependency(
        request: Request,
        x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
    ) -> None:
        if not settings.app.rate_limit_enabled:
            return
        _consume(request, preset_name, x_api_key)

    return _dependency


async def enforce_rate_limit(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency applying the configured default preset to /v1 routes.

    Raises:
        RateLimitAppError: 429 Too Many Requests when the budget is exhausted.
    """

    if not settings.app.rate_limit_enabled:
        return
    _consume(request, settings.app.rate_limit_preset, x_api_key)
