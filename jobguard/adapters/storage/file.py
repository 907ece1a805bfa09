"""Durable key/value store persisted to a single JSON file.

Suitable for a single-process deployment that must keep throttle lockouts
across restarts. Every mutation rewrites the file through a temporary file
and an atomic rename, so a crash leaves either the old or the new snapshot.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from jobguard.adapters.storage.in_memory import InMemoryKeyValueStore
from jobguard.core.errors import StorageAppError, StorageQuotaExceededError

logger = logging.getLogger(__name__)


class JsonFileKeyValueStore(InMemoryKeyValueStore):
    """In-memory store mirrored to ``file_path`` after every write."""

    def __init__(self, file_path: str | Path, *, quota_bytes: int | None = None) -> None:
        super().__init__(quota_bytes=quota_bytes)
        self._path = Path(file_path)
        self._load()

    def _load(self) -> None:
        if not self._path.is_file():
            return

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            # Start empty rather than refusing to boot; the next write replaces the file.
            logger.error(
                "storage.load_failed",
                extra={"path": str(self._path), "error_type": type(exc).__name__},
            )
            return

        if not isinstance(raw, dict):
            logger.error("storage.load_failed", extra={"path": str(self._path), "error_type": "not_an_object"})
            return

        for key, value in raw.items():
            if not (isinstance(key, str) and isinstance(value, str)):
                continue
            try:
                super().set(key, value)
            except StorageQuotaExceededError:
                # File outgrew the configured quota; keep what fits.
                logger.error(
                    "storage.load_failed",
                    extra={"path": str(self._path), "error_type": "quota_exceeded", "keys": len(self._data)},
                )
                return

        logger.info("storage.loaded", extra={"path": str(self._path), "keys": len(self._data)})

    def _flush(self) -> None:
        snapshot = dict(self._data)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(snapshot), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise StorageAppError(
                code="storage_write_failed",
                message="Could not persist the key/value store",
                details={"backend": "file", "hint": str(self._path)},
            ) from exc

    def _restore(self, key: str, previous: str | None) -> None:
        if previous is None:
            super().delete(key)
        else:
            super().set(key, previous)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            previous = super().get(key)
            super().set(key, value)
            try:
                self._flush()
            except StorageAppError:
                self._restore(key, previous)
                raise

    def delete(self, key: str) -> None:
        with self._lock:
            previous = super().get(key)
            if previous is None:
                return
            super().delete(key)
            try:
                self._flush()
            except StorageAppError:
                self._restore(key, previous)
                raise

    def close(self) -> None:
        # Keep the file; only drop the in-memory mirror.
        with self._lock:
            super().close()
