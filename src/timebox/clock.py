"""Clock sources used to measure Budget elapsed time."""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Anything with a `now()` returning a non-decreasing float in seconds."""

    def now(self) -> float: ...


class MonotonicClock:
    """
    Relative time from the platform monotonic clock.

    Starts at an arbitrary point (such as system boot) and never moves
    backward. Does not represent real time.
    """

    def now(self) -> float:
        return time.monotonic()

    def __repr__(self) -> str:
        return "MonotonicClock()"


class WallClock:
    """Wall-clock seconds since the epoch. Only used without a monotonic source."""

    def now(self) -> float:
        return time.time()

    def __repr__(self) -> str:
        return "WallClock()"


class ManualClock:
    """
    A clock that only moves when told to. Intended for tests.

        clock = ManualClock()
        timebox.configure(clock=clock)
        budget = timebox.start(3)
        clock.advance(4)
        assert budget.exceeded
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        """Move the clock forward by `seconds`. Returns the new reading."""
        if seconds < 0:
            raise ValueError("ManualClock cannot move backward")
        self._now += seconds
        return self._now

    def set(self, now: float) -> None:
        """Jump to an absolute reading, which must not be in the past."""
        if now < self._now:
            raise ValueError("ManualClock cannot move backward")
        self._now = float(now)

    def __repr__(self) -> str:
        return f"ManualClock(now={self._now!r})"


def default_clock() -> Clock:
    """Pick the process clock: monotonic when the platform has one."""
    if hasattr(time, "monotonic"):
        try:
            if time.get_clock_info("monotonic").monotonic:
                return MonotonicClock()
        except (OSError, ValueError):
            pass
    return WallClock()
