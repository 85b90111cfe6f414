"""
contribround/clock.py

Time sources for round deadlines. All times are integer milliseconds.
"""

import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """Monotonically non-decreasing current-time source."""

    @abstractmethod
    def now(self) -> int:
        pass


class SystemClock(Clock):
    """Wall clock."""

    def now(self) -> int:
        return int(time.time() * 1000)


class ManualClock(Clock):
    """Clock that only moves when told to (tests, simulations)."""

    def __init__(self, start: int = 0):
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, ms: int) -> int:
        if ms < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now += ms
        return self._now

    def set(self, ms: int) -> None:
        if ms < self._now:
            raise ValueError("ManualClock cannot move backwards")
        self._now = ms
