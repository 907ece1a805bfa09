from __future__ import annotations

from jobguard.api.routes.cache import router as cache_router
from jobguard.api.routes.health import router as health_router
from jobguard.api.routes.throttle import router as throttle_router

__all__ = ["cache_router", "health_router", "throttle_router"]
