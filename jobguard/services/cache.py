"""Type-tagged TTL cache over a key/value store.

Callers never pick a duration: they pick a ``CacheType`` and the fixed
duration table decides how fresh that kind of data must be. Entries are
stored as JSON under ``<prefix><key>`` with their expiry computed at write
time, and expire lazily: a read past ``expires_at`` purges the entry.

Caching is best-effort. Storage failures are logged and surface as a miss
(reads) or a dropped write; nothing here raises on a storage error.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, TypeVar

from jobguard.adapters.storage.base import AbstractKeyValueStore
from jobguard.core.errors import StorageAppError, StorageQuotaExceededError
from jobguard.utils.clock import MillisClock, now_ms

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MINUTE_MS = 60 * 1000


class CacheType(str, Enum):
    """Semantic tag of a cached value; selects its time-to-live."""

    USER_PROFILE = "USER_PROFILE"
    CANDIDATE_PROFILE = "CANDIDATE_PROFILE"
    COMPANY_PROFILE = "COMPANY_PROFILE"
    OFFERS_LIST = "OFFERS_LIST"
    APPLICATIONS_LIST = "APPLICATIONS_LIST"
    CANDIDATES_LIST = "CANDIDATES_LIST"
    OFFER_DETAIL = "OFFER_DETAIL"
    APPLICATION_DETAIL = "APPLICATION_DETAIL"
    HOMEPAGE_OFFERS = "HOMEPAGE_OFFERS"
    NOTIFICATION_SETTINGS = "NOTIFICATION_SETTINGS"
    LOCATIONS = "LOCATIONS"
    STATIC_DATA = "STATIC_DATA"


CACHE_DURATIONS_MS: dict[CacheType, int] = {
    # Profiles change often
    CacheType.USER_PROFILE: 5 * _MINUTE_MS,
    CacheType.CANDIDATE_PROFILE: 5 * _MINUTE_MS,
    CacheType.COMPANY_PROFILE: 10 * _MINUTE_MS,
    # Lists change very often
    CacheType.OFFERS_LIST: 2 * _MINUTE_MS,
    CacheType.APPLICATIONS_LIST: 2 * _MINUTE_MS,
    CacheType.CANDIDATES_LIST: 3 * _MINUTE_MS,
    CacheType.OFFER_DETAIL: 5 * _MINUTE_MS,
    CacheType.APPLICATION_DETAIL: 3 * _MINUTE_MS,
    CacheType.HOMEPAGE_OFFERS: 5 * _MINUTE_MS,
    CacheType.NOTIFICATION_SETTINGS: 10 * _MINUTE_MS,
    # Reference data
    CacheType.LOCATIONS: 60 * _MINUTE_MS,
    CacheType.STATIC_DATA: 60 * _MINUTE_MS,
}


def duration_for(cache_type: CacheType | str) -> int:
    """Return the time-to-live in milliseconds for ``cache_type``.

    Raises:
        ValueError: If ``cache_type`` is not a known tag.
    """

    return CACHE_DURATIONS_MS[CacheType(cache_type)]


@dataclass
class CacheEntry:
    """Stored envelope around a cached value (timestamps in epoch milliseconds)."""

    data: Any
    timestamp: int
    expires_at: int

    def is_valid(self, now: int) -> bool:
        return now <= self.expires_at

    def to_json(self) -> str:
        return json.dumps(
            {"data": self.data, "timestamp": self.timestamp, "expires_at": self.expires_at},
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, raw: str) -> "CacheEntry":
        """Parse a stored entry.

        Raises:
            ValueError: If ``raw`` is not a well-formed entry.
        """
        payload = json.loads(raw)
        if not isinstance(payload, dict) or "data" not in payload:
            raise ValueError("cache entry must be an object with a data field")

        timestamp = payload.get("timestamp")
        expires_at = payload.get("expires_at")
        if not isinstance(timestamp, int) or not isinstance(expires_at, int):
            raise ValueError("cache entry timestamps must be integers")

        return cls(data=payload["data"], timestamp=timestamp, expires_at=expires_at)


class TTLCache:
    """Best-effort cache of JSON-serializable values keyed by string.

    Attributes:
        prefix: Namespace separating cache entries from other stored keys.
    """

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        prefix: str = "jt_cache_",
        clock: MillisClock = now_ms,
    ) -> None:
        if not prefix:
            raise ValueError("prefix must be a non-empty string")

        self._store = store
        self._prefix = prefix
        self._clock = clock
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"TTLCache(prefix={self._prefix!r}, hits={self._hits}, "
            f"misses={self._misses}, evictions={self._evictions})"
        )

    @property
    def prefix(self) -> str:
        return self._prefix

    def _full_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _namespace_keys(self) -> list[str]:
        return [k for k in self._store.keys() if k.startswith(self._prefix)]

    def _remove(self, full_key: str) -> bool:
        try:
            self._store.delete(full_key)
        except StorageAppError as exc:
            logger.warning("cache.delete_failed", extra={"cache_key": full_key, "error_code": exc.code})
            return False
        return True

    def get_from_cache(self, key: str, cache_type: CacheType | str) -> Any | None:
        """Return the cached value for ``key``, or None on a miss.

        Expired and unparseable entries are removed as a side effect.
        ``cache_type`` documents the expected kind of value; the expiry was
        fixed when the entry was written.
        """

        full_key = self._full_key(key)
        with self._lock:
            try:
                raw = self._store.get(full_key)
            except StorageAppError as exc:
                self._misses += 1
                logger.warning(
                    "cache.read_failed",
                    extra={"cache_key": full_key, "error_code": exc.code},
                )
                return None

            if raw is None:
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": full_key, "reason": "not_found"})
                return None

            try:
                entry = CacheEntry.from_json(raw)
            except ValueError:
                self._misses += 1
                if self._remove(full_key):
                    self._evictions += 1
                logger.warning("cache.miss", extra={"cache_key": full_key, "reason": "corrupt"})
                return None

            if not entry.is_valid(self._clock()):
                self._misses += 1
                if self._remove(full_key):
                    self._evictions += 1
                logger.debug(
                    "cache.miss",
                    extra={
                        "cache_key": full_key,
                        "reason": "expired",
                        "cache_type": getattr(cache_type, "value", cache_type),
                    },
                )
                return None

            self._hits += 1
            logger.debug("cache.hit", extra={"cache_key": full_key})
            return entry.data

    def set_in_cache(self, key: str, cache_type: CacheType | str, data: Any) -> None:
        """Store ``data`` under ``key`` for the duration of ``cache_type``.

        On a quota failure, expired entries are swept and the write is
        retried once; if it still does not fit it is dropped.

        Raises:
            ValueError: If ``cache_type`` is not a known tag.
        """

        duration = duration_for(cache_type)
        full_key = self._full_key(key)

        with self._lock:
            now = self._clock()
            entry = CacheEntry(data=data, timestamp=now, expires_at=now + duration)
            try:
                payload = entry.to_json()
            except (TypeError, ValueError):
                logger.warning("cache.unserializable", extra={"cache_key": full_key})
                return

            try:
                self._store.set(full_key, payload)
            except StorageQuotaExceededError:
                logger.warning("storage.quota_exceeded", extra={"cache_key": full_key})
                self.clear_expired_cache()
                try:
                    self._store.set(full_key, payload)
                except StorageAppError as exc:
                    logger.warning(
                        "cache.write_dropped",
                        extra={"cache_key": full_key, "error_code": exc.code},
                    )
                    return
            except StorageAppError as exc:
                logger.warning(
                    "cache.write_dropped",
                    extra={"cache_key": full_key, "error_code": exc.code},
                )
                return

            logger.debug(
                "cache.set",
                extra={
                    "cache_key": full_key,
                    "cache_type": CacheType(cache_type).value,
                    "ttl_ms": duration,
                },
            )

    def get_or_fetch(self, key: str, cache_type: CacheType | str, fetch: Callable[[], T]) -> T:
        """Return the cached value, or call ``fetch`` and cache its result.

        A ``fetch`` returning None is not cached, since None means a miss.
        Exceptions from ``fetch`` propagate to the caller.
        """

        cached = self.get_from_cache(key, cache_type)
        if cached is not None:
            return cached

        value = fetch()
        if value is not None:
            self.set_in_cache(key, cache_type, value)
        return value

    def invalidate_cache(self, key: str) -> None:
        """Remove exactly one entry."""

        with self._lock:
            self._remove(self._full_key(key))

    def invalidate_cache_pattern(self, prefix: str) -> int:
        """Remove every entry whose key starts with ``prefix``.

        Returns:
            Number of entries removed.
        """

        full_prefix = self._full_key(prefix)
        removed = 0
        with self._lock:
            try:
                keys = self._store.keys()
            except StorageAppError as exc:
                logger.warning("cache.invalidate_failed", extra={"pattern": prefix, "error_code": exc.code})
                return 0

            for full_key in keys:
                if full_key.startswith(full_prefix) and self._remove(full_key):
                    removed += 1

        logger.info("cache.invalidated", extra={"pattern": prefix, "removed": removed})
        return removed

    def clear_expired_cache(self) -> int:
        """Remove expired and unparseable entries across the namespace.

        Returns:
            Number of entries removed.
        """

        removed = 0
        with self._lock:
            now = self._clock()
            try:
                keys = self._namespace_keys()
            except StorageAppError as exc:
                logger.warning("cache.sweep_failed", extra={"error_code": exc.code})
                return 0

            for full_key in keys:
                try:
                    raw = self._store.get(full_key)
                except StorageAppError:
                    continue
                if raw is None:
                    continue

                try:
                    expired = not CacheEntry.from_json(raw).is_valid(now)
                except ValueError:
                    expired = True

                if expired and self._remove(full_key):
                    removed += 1

            self._evictions += removed

        if removed:
            logger.info("cache.swept", extra={"removed": removed})
        return removed

    def clear_all_cache(self) -> int:
        """Remove every entry in the namespace, valid or not.

        Returns:
            Number of entries removed.
        """

        removed = 0
        with self._lock:
            try:
                keys = self._namespace_keys()
            except StorageAppError as exc:
                logger.warning("cache.clear_failed", extra={"error_code": exc.code})
                return 0

            for full_key in keys:
                if self._remove(full_key):
                    removed += 1

        logger.info("cache.cleared", extra={"removed": removed})
        return removed

    def stats(self) -> dict[str, int | str]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            try:
                entries = len(self._namespace_keys())
            except StorageAppError:
                entries = -1
            return {
                "prefix": self._prefix,
                "entries": entries,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }
