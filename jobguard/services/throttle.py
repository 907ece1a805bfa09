"""Per-key throttle tracker guarding repeated actions such as login attempts.

Each tracked key (e.g. ``login-candidate-<email>``) owns one record in the
key/value store holding its recent attempt timestamps, the time of the last
attempt and an optional lockout deadline. ``check_throttle`` both decides and
counts: an allowed check is recorded as an attempt, so a caller cannot skip
the counting by checking without recording. A success clears the record.

State per key: fresh -> throttled by interval (transient) -> locked out
(until ``locked_until``) -> fresh again on success or natural expiry.

The tracker is advisory flood protection. Storage failures fail open: the
guarded action stays available and the failure is logged.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, field

from jobguard.adapters.storage.base import AbstractKeyValueStore
from jobguard.core.errors import StorageAppError
from jobguard.core.logging import hash_for_logs
from jobguard.utils.clock import MillisClock, now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThrottleConfig:
    """Throttle policy for one family of keys. Every field is required.

    Attributes:
        min_interval_ms: Minimum delay between two attempts on the same key.
        max_attempts: Attempts allowed inside the window before a lockout.
        lockout_duration_ms: How long a key stays blocked once locked out.
        window_duration_ms: Sliding window over which attempts are counted.
    """

    min_interval_ms: int
    max_attempts: int
    lockout_duration_ms: int
    window_duration_ms: int

    def __post_init__(self) -> None:
        if self.min_interval_ms < 0:
            raise ValueError("min_interval_ms must be >= 0")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.lockout_duration_ms < 0:
            raise ValueError("lockout_duration_ms must be >= 0")
        if self.window_duration_ms < 1:
            raise ValueError("window_duration_ms must be >= 1")


# Login forms (candidate, company, admin): 5 tries per 5 minutes, then 5 minutes locked.
LOGIN_THROTTLE = ThrottleConfig(
    min_interval_ms=1_000,
    max_attempts=5,
    lockout_duration_ms=5 * 60 * 1000,
    window_duration_ms=5 * 60 * 1000,
)

# Sign-up and password reset: 3 tries per hour, then an hour locked.
SIGNUP_THROTTLE = ThrottleConfig(
    min_interval_ms=1_000,
    max_attempts=3,
    lockout_duration_ms=60 * 60 * 1000,
    window_duration_ms=60 * 60 * 1000,
)

PASSWORD_RESET_THROTTLE = SIGNUP_THROTTLE

THROTTLE_PRESETS: dict[str, ThrottleConfig] = {
    "login": LOGIN_THROTTLE,
    "signup": SIGNUP_THROTTLE,
    "password_reset": PASSWORD_RESET_THROTTLE,
}


@dataclass
class ThrottleRecord:
    """Persisted state of one throttle key (timestamps in epoch milliseconds)."""

    key: str
    attempts: list[int] = field(default_factory=list)
    locked_until: int | None = None
    last_attempt_at: int | None = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str) -> "ThrottleRecord":
        """Parse a stored record.

        Raises:
            ValueError: If ``raw`` is not a well-formed record.
        """
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError("throttle record must be a JSON object")

        attempts = payload.get("attempts", [])
        locked_until = payload.get("locked_until")
        last_attempt_at = payload.get("last_attempt_at")

        if not isinstance(attempts, list) or not all(isinstance(t, int) for t in attempts):
            raise ValueError("attempts must be a list of integers")
        for value in (locked_until, last_attempt_at):
            if value is not None and not isinstance(value, int):
                raise ValueError("timestamps must be integers")

        return cls(
            key=str(payload.get("key", "")),
            attempts=sorted(attempts),
            locked_until=locked_until,
            last_attempt_at=last_attempt_at,
        )


@dataclass(frozen=True)
class ThrottleDecision:
    """Outcome of a throttle check.

    Attributes:
        allowed: Whether the guarded action may proceed now.
        wait_ms: Milliseconds to wait before the next attempt (0 when allowed).
        attempts_left: Attempts remaining in the window before a lockout.
    """

    allowed: bool
    wait_ms: int
    attempts_left: int


class ThrottleTracker:
    """Track attempts per key in a key/value store.

    Attributes:
        prefix: Namespace prepended to every key in the store.
    """

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        prefix: str = "rl_",
        clock: MillisClock = now_ms,
    ) -> None:
        if not prefix:
            raise ValueError("prefix must be a non-empty string")

        self._store = store
        self._prefix = prefix
        self._clock = clock
        self._lock = threading.RLock()

    @property
    def prefix(self) -> str:
        return self._prefix

    def _storage_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _load(self, key: str) -> ThrottleRecord | None:
        """Read the record for ``key``; corrupt records are deleted and ignored.

        Raises:
            StorageAppError: If the store cannot be read.
        """
        storage_key = self._storage_key(key)
        raw = self._store.get(storage_key)
        if raw is None:
            return None

        try:
            record = ThrottleRecord.from_json(raw)
        except ValueError:
            logger.warning("throttle.corrupt_record", extra={"key_hash": hash_for_logs(key)})
            self._delete_quietly(key)
            return None

        record.key = key
        return record

    def _save(self, record: ThrottleRecord) -> None:
        try:
            self._store.set(self._storage_key(record.key), record.to_json())
        except StorageAppError as exc:
            logger.warning(
                "throttle.write_failed",
                extra={"key_hash": hash_for_logs(record.key), "error_code": exc.code},
            )

    def _delete_quietly(self, key: str) -> None:
        try:
            self._store.delete(self._storage_key(key))
        except StorageAppError as exc:
            logger.warning(
                "throttle.delete_failed",
                extra={"key_hash": hash_for_logs(key), "error_code": exc.code},
            )

    def get_record(self, key: str) -> ThrottleRecord | None:
        """Return the stored record for ``key`` without pruning or counting.

        Returns None for unknown keys and when the store cannot be read.
        """
        with self._lock:
            try:
                return self._load(key)
            except StorageAppError:
                return None

    def check_throttle(self, key: str, config: ThrottleConfig) -> ThrottleDecision:
        """Decide whether an attempt on ``key`` is allowed and count it if so.

        Call this before every guarded attempt. Attempts older than the
        window are pruned first; then, in order: an active lockout blocks
        until it ends, an attempt within ``min_interval_ms`` of the previous
        one is blocked for the remaining interval, and reaching
        ``max_attempts`` inside the window starts a lockout. Otherwise the
        attempt is recorded and allowed.

        Args:
            key: Caller-defined action key plus discriminator.
            config: Throttle policy for this key.

        Returns:
            ThrottleDecision for this attempt.
        """
        key_hash = hash_for_logs(key)

        with self._lock:
            now = self._clock()

            try:
                record = self._load(key)
            except StorageAppError as exc:
                logger.warning(
                    "throttle.fail_open",
                    extra={"key_hash": key_hash, "error_code": exc.code},
                )
                return ThrottleDecision(allowed=True, wait_ms=0, attempts_left=config.max_attempts)

            if record is None:
                record = ThrottleRecord(key=key)

            window_start = now - config.window_duration_ms
            pruned = [t for t in record.attempts if t >= window_start]
            changed = len(pruned) != len(record.attempts)
            record.attempts = pruned

            if record.locked_until is not None:
                if now < record.locked_until:
                    if changed:
                        self._save(record)
                    return ThrottleDecision(
                        allowed=False,
                        wait_ms=record.locked_until - now,
                        attempts_left=0,
                    )

                # Lockout served: the key starts over.
                logger.info("throttle.lockout_expired", extra={"key_hash": key_hash})
                record.locked_until = None
                record.attempts = []
                changed = True

            if record.last_attempt_at is not None:
                elapsed = now - record.last_attempt_at
                if elapsed < config.min_interval_ms:
                    if changed:
                        self._save(record)
                    logger.debug(
                        "throttle.interval",
                        extra={"key_hash": key_hash, "elapsed_ms": elapsed},
                    )
                    return ThrottleDecision(
                        allowed=False,
                        wait_ms=config.min_interval_ms - elapsed,
                        attempts_left=max(0, config.max_attempts - len(record.attempts)),
                    )

            if len(record.attempts) >= config.max_attempts:
                record.locked_until = now + config.lockout_duration_ms
                self._save(record)
                logger.warning(
                    "throttle.locked",
                    extra={
                        "key_hash": key_hash,
                        "attempts": len(record.attempts),
                        "lockout_ms": config.lockout_duration_ms,
                    },
                )
                return ThrottleDecision(
                    allowed=False,
                    wait_ms=config.lockout_duration_ms,
                    attempts_left=0,
                )

            record.attempts.append(now)
            record.last_attempt_at = now
            self._save(record)
            return ThrottleDecision(
                allowed=True,
                wait_ms=0,
                attempts_left=config.max_attempts - len(record.attempts),
            )

    def record_success(self, key: str) -> None:
        """Forget everything about ``key`` after the guarded action succeeded."""
        with self._lock:
            self._delete_quietly(key)
        logger.debug("throttle.success", extra={"key_hash": hash_for_logs(key)})

    def clear_throttle(self, key: str) -> None:
        """Administrative reset of ``key`` (e.g. unlocking a user on request)."""
        with self._lock:
            self._delete_quietly(key)
        logger.info("throttle.cleared", extra={"key_hash": hash_for_logs(key)})
