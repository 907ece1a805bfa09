"""Millisecond wall clock shared by the throttle tracker and the TTL cache."""

from __future__ import annotations

import time
from typing import Callable

MillisClock = Callable[[], int]


def now_ms() -> int:
    """Return the current UNIX time in whole milliseconds."""

    return int(time.time() * 1000)
