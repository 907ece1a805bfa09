"""FastAPI dependencies resolving the application's service container."""

from __future__ import annotations

from fastapi import Request

from jobguard.services.cache import TTLCache
from jobguard.services.container import GuardServices
from jobguard.services.throttle import ThrottleTracker


def get_services(request: Request) -> GuardServices:
    return request.app.state.services


def get_throttle_tracker(request: Request) -> ThrottleTracker:
    return get_services(request).throttle


def get_cache(request: Request) -> TTLCache:
    return get_services(request).cache
