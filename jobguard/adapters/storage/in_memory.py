"""In-memory key/value store with an optional byte quota.

Notes:
- Per-process only: running multiple workers gives each its own state.
- Thread-safe: uses a lock around shared state.
- The quota mimics browser storage limits so callers can exercise their
  quota-recovery paths.
"""

from __future__ import annotations

import threading

from jobguard.adapters.storage.base import AbstractKeyValueStore
from jobguard.core.errors import StorageQuotaExceededError


def _entry_size(key: str, value: str) -> int:
    return len(key.encode()) + len(value.encode())


class InMemoryKeyValueStore(AbstractKeyValueStore):
    """Dict-backed store.

    Attributes:
        quota_bytes: Maximum combined size of keys and values (None for unlimited).
    """

    def __init__(self, *, quota_bytes: int | None = None) -> None:
        if quota_bytes is not None and quota_bytes < 1:
            raise ValueError("quota_bytes must be >= 1")

        self._quota_bytes = quota_bytes
        self._data: dict[str, str] = {}
        self._used_bytes = 0
        self._lock = threading.RLock()

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryKeyValueStore(quota_bytes={self._quota_bytes}, "
            f"keys={len(self._data)}, used_bytes={self._used_bytes})"
        )

    @property
    def used_bytes(self) -> int:
        with self._lock:
            return self._used_bytes

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            previous = self._data.get(key)
            freed = _entry_size(key, previous) if previous is not None else 0
            required = self._used_bytes - freed + _entry_size(key, value)

            if self._quota_bytes is not None and required > self._quota_bytes:
                raise StorageQuotaExceededError(
                    code="storage_quota_exceeded",
                    message="Write exceeds the storage quota",
                    details={
                        "backend": "memory",
                        "quota_bytes": self._quota_bytes,
                        "required_bytes": required,
                    },
                )

            self._data[key] = value
            self._used_bytes = required

    def delete(self, key: str) -> None:
        with self._lock:
            previous = self._data.pop(key, None)
            if previous is not None:
                self._used_bytes -= _entry_size(key, previous)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def close(self) -> None:
        with self._lock:
            self._data.clear()
            self._used_bytes = 0
