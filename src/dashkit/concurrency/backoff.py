"""Exponential backoff: the delay calculator and the bounded retry executor."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol, TypeVar, runtime_checkable

from dashkit.concurrency.tasks import wait
from dashkit.timing.timespan import TimeSpan

T = TypeVar("T")

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class BackoffCalculator(Protocol):
    """Strategy computing the delay that follows `current_delay`."""

    def next(self, current_delay: TimeSpan, factor: float, jitter: TimeSpan | None = None) -> TimeSpan:
        ...


class ExponentialBackoffCalculator:
    """Multiply the delay by `factor` and add uniform jitter in ``[0, jitter)``.

    The result is never clamped; callers compare it against their own ceiling.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def next(self, current_delay: TimeSpan, factor: float, jitter: TimeSpan | None = None) -> TimeSpan:
        extra = self._rng.random() * jitter.total_milliseconds if jitter else 0.0
        return TimeSpan.from_milliseconds(current_delay.total_milliseconds * factor + extra)


@dataclass(frozen=True)
class BackoffOptions:
    """Configuration for :class:`ExponentialBackoff`."""

    initial_delay: TimeSpan
    max_delay: TimeSpan
    factor: float
    jitter: TimeSpan | None = None

    def __post_init__(self) -> None:
        if self.initial_delay > self.max_delay:
            raise ValueError("initial_delay must not exceed max_delay")
        if self.factor <= 0:
            raise ValueError("factor must be positive")


class ExponentialBackoff:
    """Run an async operation, retrying with growing delays until it succeeds.

    The first attempt always runs. After each failure the executor sleeps for
    the current delay and then grows it; once the grown delay exceeds
    ``max_delay`` no further attempt is made and the last error is raised.

    With ``report_unhandled`` set, an exhausted run also hands the last error
    to the event loop's exception handler before raising it, so the failure
    is visible even when the caller drops the result.
    """

    def __init__(
        self,
        options: BackoffOptions,
        *,
        calculator: BackoffCalculator | None = None,
        report_unhandled: bool = False,
        logger: logging.Logger | None = None,
    ) -> None:
        self.options = options
        self.calculator = calculator or ExponentialBackoffCalculator()
        self.report_unhandled = report_unhandled
        self._logger = logger or LOGGER

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Await `operation` until it succeeds or the retry budget is spent."""

        options = self.options
        current_delay = options.initial_delay
        last_error: Exception | None = None
        attempt = 0

        while current_delay <= options.max_delay:
            attempt += 1
            try:
                return await operation()
            except Exception as exc:  # noqa: BLE001 - raised again once retries are exhausted
                last_error = exc
                self._logger.debug(
                    "Attempt %s failed (%s); retrying in %.0fms",
                    attempt,
                    exc,
                    current_delay.total_milliseconds,
                )
                await wait(current_delay)
                current_delay = self.calculator.next(current_delay, options.factor, options.jitter)

        assert last_error is not None  # initial_delay <= max_delay guarantees one attempt
        self._logger.debug("Giving up after %s attempts", attempt)
        if self.report_unhandled:
            asyncio.get_running_loop().call_exception_handler(
                {
                    "message": f"Operation failed after {attempt} attempts",
                    "exception": last_error,
                }
            )
        raise last_error


def delay_schedule(options: BackoffOptions, calculator: BackoffCalculator | None = None) -> list[TimeSpan]:
    """Return the sleeps an always-failing operation would go through."""

    calculator = calculator or ExponentialBackoffCalculator()
    delays: list[TimeSpan] = []
    current = options.initial_delay
    while current <= options.max_delay:
        delays.append(current)
        current = calculator.next(current, options.factor, options.jitter)
        if options.factor <= 1 and current <= delays[-1]:
            # delays that never grow would repeat forever
            break
    return delays


__all__ = [
    "BackoffCalculator",
    "BackoffOptions",
    "ExponentialBackoff",
    "ExponentialBackoffCalculator",
    "delay_schedule",
]
