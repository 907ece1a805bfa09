"""Application factory for the FastAPI app.

Centralizes app construction (services, middleware, handlers, routers) so
tests can build isolated apps with their own store and clock.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from jobguard.api.routes import cache_router, health_router, throttle_router
from jobguard.core.config import Settings, settings as default_settings
from jobguard.core.exception_handlers import setup_exception_handlers
from jobguard.core.logging import configure_logging
from jobguard.core.middleware import request_id_middleware
from jobguard.core.openapi import apply_openapi_customizations
from jobguard.core.rate_limit import RateLimiterRegistry
from jobguard.services.container import GuardServices, build_services


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    services: GuardServices | None = getattr(app.state, "services", None)
    if services is not None:
        services.close()


def create_app(
    app_settings: Settings | None = None,
    *,
    services: GuardServices | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; defaults to the global settings.
        services: Pre-built services (tests); built from settings otherwise.

    Returns:
        Configured app; its services are closed at shutdown.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="JobGuard API",
        description=(
            "Anti-flood throttle and type-tagged TTL cache for the internship and "
            "apprenticeship job board. Requires X-API-Key."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=_lifespan,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    app.state.services = services if services is not None else build_services(cfg.storage)
    app.state.rate_limiters = RateLimiterRegistry()

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(throttle_router, prefix="/v1")
    app.include_router(cache_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
