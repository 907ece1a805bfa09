"""Human-readable countdowns for throttle feedback shown to job-board users."""

from __future__ import annotations

import math


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count > 1 else ''}"


def format_wait_time(wait_ms: int) -> str:
    """Format a millisecond wait as a French countdown.

    Durations under a minute are shown in whole seconds (rounded up), longer
    ones in whole minutes (rounded up).

    Examples:
        >>> format_wait_time(30_000)
        '30 secondes'
        >>> format_wait_time(1)
        '1 seconde'
        >>> format_wait_time(300_000)
        '5 minutes'
        >>> format_wait_time(61_000)
        '2 minutes'
    """

    seconds = math.ceil(max(0, wait_ms) / 1000)
    if seconds < 60:
        return _plural(seconds, "seconde")
    return _plural(math.ceil(seconds / 60), "minute")
