"""Time sources for abuse-control accounting."""

from __future__ import annotations

import time


class Clock:
    """Monotonic clock for window math, wall clock for rendered timestamps."""

    def __init__(self):
        # Captured once so projections do not drift with wall-clock steps.
        self._wall_offset = time.time() - time.monotonic()

    def monotonic(self) -> float:
        return time.monotonic()

    def wall(self) -> float:
        return time.time()

    def to_wall(self, monotonic_ts: float) -> float:
        """Project a monotonic timestamp onto the wall clock."""
        return monotonic_ts + self._wall_offset


class FakeClock(Clock):
    """Manually advanced clock for tests and offline replays."""

    def __init__(self, start: float = 1_000.0, wall_start: float = 1_767_225_600.0):
        self._now = start
        self._wall_offset = wall_start - start

    def monotonic(self) -> float:
        return self._now

    def wall(self) -> float:
        return self._now + self._wall_offset

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("FakeClock cannot move backwards")
        self._now += seconds
