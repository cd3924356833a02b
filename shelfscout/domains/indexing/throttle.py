"""
Stats Refresh Throttle - Limits how often planner statistics are refreshed.
"""

from __future__ import annotations

import time
from collections.abc import Callable

__all__ = ["StatsRefreshThrottle"]


class StatsRefreshThrottle:
    """
    Best-effort "at most once per interval" gate.

    Not a lock: two concurrent batches may both refresh, which is harmless.

    Example:
        >>> throttle = StatsRefreshThrottle(interval_seconds=120)
        >>> throttle.should_run()
        True
        >>> throttle.should_run()
        False
    """

    def __init__(
        self,
        interval_seconds: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._last_run: float | None = None

    def should_run(self) -> bool:
        """Return True (and record the run) when the interval has elapsed."""
        now = self._clock()
        if self._last_run is not None and now - self._last_run < self.interval_seconds:
            return False
        self._last_run = now
        return True

    def reset(self) -> None:
        self._last_run = None
