"""Factory for the configured key/value store backend."""

from __future__ import annotations

from jobguard.adapters.storage.base import AbstractKeyValueStore
from jobguard.adapters.storage.file import JsonFileKeyValueStore
from jobguard.adapters.storage.in_memory import InMemoryKeyValueStore
from jobguard.core.config import StorageSettings, settings
from jobguard.core.errors import ValidationAppError


def create_store(storage_settings: StorageSettings | None = None) -> AbstractKeyValueStore:
    """Instantiate the store selected by ``STORAGE_BACKEND``.

    Args:
        storage_settings: Optional settings; defaults to the global settings.

    Returns:
        AbstractKeyValueStore: Ready-to-use store.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    cfg = storage_settings or settings.storage
    backend = cfg.backend.lower()

    if backend == "memory":
        return InMemoryKeyValueStore(quota_bytes=cfg.quota_bytes)

    if backend == "file":
        return JsonFileKeyValueStore(cfg.file_path, quota_bytes=cfg.quota_bytes)

    raise ValidationAppError(
        code="unsupported_storage_backend",
        message=f"Unsupported storage backend: {cfg.backend}",
        details={"backend": cfg.backend, "hint": "Use STORAGE_BACKEND=memory or file"},
    )
