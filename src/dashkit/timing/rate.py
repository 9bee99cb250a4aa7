"""Frequencies expressed as occurrences per interval, plus a limiter built on them."""

from __future__ import annotations

import asyncio
import time

from dashkit.timing.timespan import TimeSpan


class Rate:
    """A frequency such as "5 per minute" with the derived delay between occurrences."""

    def __init__(self, rate: float, interval: TimeSpan) -> None:
        if rate <= 0:
            raise ValueError("Rate must be a positive number")
        self.rate = rate
        self.interval = interval

    @classmethod
    def of(cls, rate: float, interval: TimeSpan) -> "Rate":
        return cls(rate, interval)

    @property
    def delay(self) -> TimeSpan:
        """Delay between two consecutive occurrences."""
        return TimeSpan.from_milliseconds(self.interval.total_milliseconds / self.rate)

    def __repr__(self) -> str:
        return f"Rate({self.rate:g} per {self.interval!r})"


class RateLimiter:
    """Asynchronous limiter spacing acquisitions at least ``rate.delay`` apart."""

    def __init__(self, rate: Rate) -> None:
        self._interval = rate.delay.total_seconds
        self._lock = asyncio.Lock()
        self._last_acquired: float | None = None

    async def acquire(self) -> None:
        """Wait until the caller is allowed to proceed."""

        async with self._lock:
            if self._last_acquired is not None:
                wait_time = self._interval - (time.monotonic() - self._last_acquired)
                if wait_time > 0:
                    await asyncio.sleep(wait_time)
            self._last_acquired = time.monotonic()


__all__ = ["Rate", "RateLimiter"]
