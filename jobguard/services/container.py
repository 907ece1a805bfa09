"""Explicitly constructed service container with a start/stop lifecycle.

The application factory builds one ``GuardServices`` at start-up and hands
it to routes through FastAPI dependencies; tests build their own with an
in-memory store and a fake clock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from jobguard.adapters.storage.base import AbstractKeyValueStore
from jobguard.adapters.storage.factory import create_store
from jobguard.core.config import StorageSettings
from jobguard.services.cache import TTLCache
from jobguard.services.throttle import ThrottleTracker
from jobguard.utils.clock import MillisClock, now_ms

logger = logging.getLogger(__name__)


@dataclass
class GuardServices:
    """The store and the two mechanisms sharing it."""

    store: AbstractKeyValueStore
    throttle: ThrottleTracker
    cache: TTLCache

    def close(self) -> None:
        self.store.close()
        logger.info("services.stopped")


def build_services(
    storage_settings: StorageSettings,
    *,
    store: AbstractKeyValueStore | None = None,
    clock: MillisClock = now_ms,
) -> GuardServices:
    """Create the store (unless given), tracker and cache.

    Runs the start-up sweep of expired cache entries when
    ``storage_settings.sweep_on_startup`` is set.
    """

    kv_store = store if store is not None else create_store(storage_settings)
    services = GuardServices(
        store=kv_store,
        throttle=ThrottleTracker(kv_store, prefix=storage_settings.throttle_prefix, clock=clock),
        cache=TTLCache(kv_store, prefix=storage_settings.cache_prefix, clock=clock),
    )

    if storage_settings.sweep_on_startup:
        services.cache.clear_expired_cache()

    logger.info(
        "services.started",
        extra={"backend": storage_settings.backend, "store": type(kv_store).__name__},
    )
    return services
