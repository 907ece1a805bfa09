"""Key/value storage interface.

The throttle tracker and the TTL cache depend on this abstraction only, so
the backing store (in-memory for tests, a JSON file or a shared store in
production) can be swapped without touching them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractKeyValueStore(ABC):
    """Minimal string-to-string store.

    Implementations raise ``StorageAppError`` when the backend is unavailable
    and ``StorageQuotaExceededError`` when a write does not fit.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or ``None`` if the key is absent."""
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Create or overwrite ``key``."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``. No-op if it does not exist."""
        raise NotImplementedError

    @abstractmethod
    def keys(self) -> list[str]:
        """Return a snapshot of every stored key."""
        raise NotImplementedError

    def close(self) -> None:
        """Release backend resources. Called at application shutdown."""
