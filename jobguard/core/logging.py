"""Structured logging for the guard service.

Every record leaves the process as one JSON line (or a plain line for local
work) tagged with the current request id. Structured extras pass through a
redaction step first:
- credentials (API keys, tokens, passwords) become ``[REDACTED]``
- identifying values (throttle keys embed e-mail addresses) are replaced by
  a short SHA-256 fingerprint, so two events about the same key still join
- cached payloads are never written out
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from jobguard.core.config import LogSettings, settings

REDACTED = "[REDACTED]"
_HASH_MARK = "sha256:"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "api_key",
        "x-api-key",
        "app_api_keys",
        "authorization",
        "cookie",
        "set-cookie",
        "password",
        "secret",
        "token",
        "cache_data",
    }
)

# Kept correlatable: replaced by a fingerprint instead of a constant
HASHED_KEYS_DEFAULT: frozenset[str] = frozenset({"email", "throttle_key"})

# Attributes every LogRecord carries; anything else on a record is an extra
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_for_logs(value: str) -> str:
    """Short, stable fingerprint of ``value`` (16 hex chars of SHA-256)."""

    return hashlib.sha256(value.encode()).hexdigest()[:16]


class _Redactor:
    """Applies the redaction rules to arbitrarily nested extras."""

    def __init__(self, sensitive_keys: Iterable[str], hashed_keys: Iterable[str]) -> None:
        self.sensitive_keys = {k.lower() for k in sensitive_keys}
        self.hashed_keys = {k.lower() for k in hashed_keys}

    def field(self, name: str, value: Any) -> Any:
        lowered = name.lower()
        if lowered in self.sensitive_keys:
            return REDACTED
        if lowered in self.hashed_keys:
            if isinstance(value, str) and value.startswith(_HASH_MARK):
                return value
            return f"{_HASH_MARK}{hash_for_logs(str(value))}"
        return self.value(value)

    def value(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {k: self.field(str(k), v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(self.value(v) for v in value)
        return value

    def extras(self, record: LogRecord) -> dict[str, Any]:
        return {
            name: self.field(name, value)
            for name, value in vars(record).items()
            if name not in _RECORD_ATTRS and not name.startswith("_")
        }


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class SensitiveDataFilter(logging.Filter):
    """Rewrite the record's extras in place, before any formatter sees them."""

    def __init__(
        self,
        sensitive_keys: Iterable[str] | None = None,
        hashed_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__()
        self._redactor = _Redactor(
            sensitive_keys if sensitive_keys is not None else SENSITIVE_KEYS_DEFAULT,
            hashed_keys if hashed_keys is not None else HASHED_KEYS_DEFAULT,
        )

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for name, value in self._redactor.extras(record).items():
            setattr(record, name, value)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message, extras.

    Extras are redacted again here so a handler without
    ``SensitiveDataFilter`` still never writes secrets.
    """

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        hashed_keys: Iterable[str] | None = None,
        ensure_ascii: bool = False,
    ) -> None:
        super().__init__()
        self._redactor = _Redactor(
            sensitive_keys if sensitive_keys is not None else SENSITIVE_KEYS_DEFAULT,
            hashed_keys if hashed_keys is not None else HASHED_KEYS_DEFAULT,
        )
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(self._redactor.extras(record))

        if payload.get("request_id") is None:
            request_id = get_request_id()
            if request_id:
                payload["request_id"] = request_id
            else:
                payload.pop("request_id", None)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(cfg: LogSettings) -> logging.Handler:
    if cfg.output == "stdout":
        return logging.StreamHandler(sys.stdout)

    path = Path(cfg.file_path or "logs/jobguard.log")
    path.parent.mkdir(parents=True, exist_ok=True)
    if cfg.max_bytes:
        return RotatingFileHandler(
            path,
            maxBytes=cfg.max_bytes,
            backupCount=cfg.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install a single redacting handler on the root logger.

    Args:
        log_settings: Optional log settings; defaults to the global settings.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    if cfg.format == "plain":
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(request_id)s] %(name)s %(message)s")
        )
    else:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # uvicorn installs its own handlers; keep its records from printing twice
    for name in ("uvicorn", "uvicorn.access"):
        logging.getLogger(name).propagate = False
