"""Adaptive polling loop that slows down on failure and recovers on success."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from dashkit.concurrency.backoff import BackoffCalculator, ExponentialBackoffCalculator
from dashkit.timing.timespan import TimeSpan
from dashkit.util.mathf import clamp

LOGGER = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]
ErrorCallback = Callable[[Exception], Any]

OutcomeKind = Literal["success", "recovering", "saturated"]


@dataclass(frozen=True)
class PollerOptions:
    """Tuning knobs for :class:`AdaptivePoller`.

    ``reset_period`` is the quiet interval without failures after which the
    delay starts shrinking by ``linear_step`` per successful cycle.
    """

    initial_delay: TimeSpan = field(default_factory=lambda: TimeSpan.from_seconds(1))
    max_delay: TimeSpan = field(default_factory=lambda: TimeSpan.from_minutes(1))
    factor: float = 1.5
    reset_period: TimeSpan = field(default_factory=lambda: TimeSpan.from_minutes(5))
    linear_step: TimeSpan = field(default_factory=lambda: TimeSpan.from_seconds(1))
    logger: Any = None

    def __post_init__(self) -> None:
        if self.initial_delay > self.max_delay:
            raise ValueError("initial_delay must not exceed max_delay")
        if self.factor <= 0:
            raise ValueError("factor must be positive")


@dataclass(frozen=True)
class PollOutcome:
    """Result of one poll cycle and the delay chosen for the next one."""

    kind: OutcomeKind
    delay: TimeSpan
    error: Exception | None = None


@dataclass
class PollerState:
    """Mutable state of one polling session."""

    current_delay_ms: float
    last_failure_at: float | None = None
    running: bool = True

    def record_success(self, now: float, options: PollerOptions) -> None:
        """Shrink the delay by one step once the quiet period has elapsed."""

        quiet = (
            self.last_failure_at is None
            or now - self.last_failure_at >= options.reset_period.total_seconds
        )
        if quiet:
            self.current_delay_ms = clamp(
                self.current_delay_ms - options.linear_step.total_milliseconds,
                options.initial_delay.total_milliseconds,
                options.max_delay.total_milliseconds,
            )

    def record_failure(self, now: float, options: PollerOptions, calculator: BackoffCalculator) -> bool:
        """Grow the delay; return True when it hit the ceiling and was clamped."""

        self.last_failure_at = now
        grown = calculator.next(TimeSpan(self.current_delay_ms), options.factor).total_milliseconds
        ceiling = options.max_delay.total_milliseconds
        if grown >= ceiling:
            self.current_delay_ms = ceiling
            return True
        self.current_delay_ms = grown
        return False


class AdaptivePoller:
    """Repeat an async operation forever with a self-tuning interval.

    Failures multiply the delay by ``factor``. While the delay is below
    ``max_delay`` each failure goes to ``on_error``; the failure that reaches
    the ceiling, and every one after it, goes to ``on_fail`` instead. After
    ``reset_period`` without failures, each success lowers the delay by
    ``linear_step`` until it is back at ``initial_delay``.

    Only :meth:`stop` ends the loop. It wakes a pending sleep but lets an
    operation that is already running finish, and returns once the loop task
    has exited.
    """

    def __init__(
        self,
        options: PollerOptions | None = None,
        *,
        calculator: BackoffCalculator | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.options = options or PollerOptions()
        self.calculator = calculator or ExponentialBackoffCalculator()
        self._clock = clock
        self._logger = self.options.logger or LOGGER

        self._state: PollerState | None = None
        self._operation: Operation | None = None
        self._on_error: ErrorCallback | None = None
        self._on_fail: ErrorCallback | None = None
        self._on_outcome: Callable[[PollOutcome], Any] | None = None
        self._task: asyncio.Task[None] | None = None
        self._wake: asyncio.Event | None = None

    @property
    def is_polling(self) -> bool:
        return self._state is not None and self._state.running

    @property
    def current_delay(self) -> TimeSpan:
        if self._state is None:
            return self.options.initial_delay
        return TimeSpan(self._state.current_delay_ms)

    @property
    def operation(self) -> Operation | None:
        return self._operation

    def start(
        self,
        operation: Operation,
        on_error: ErrorCallback | None = None,
        on_fail: ErrorCallback | None = None,
        on_outcome: Callable[[PollOutcome], Any] | None = None,
    ) -> None:
        """Begin polling on the running event loop; ignored if already polling."""

        # a stopping loop still owns the instance until its last cycle returns
        if self.is_polling or (self._task is not None and not self._task.done()):
            self._logger.warning("AdaptivePoller is already running; start ignored")
            return

        loop = asyncio.get_running_loop()
        self._operation = operation
        self._on_error = on_error
        self._on_fail = on_fail
        self._on_outcome = on_outcome
        self._state = PollerState(current_delay_ms=self.options.initial_delay.total_milliseconds)
        self._wake = asyncio.Event()
        self._task = loop.create_task(self._run(self._state, self._wake), name="adaptive-poller")
        self._task.add_done_callback(self._forget_task)

        self._logger.info("AdaptivePoller started")

    async def stop(self) -> None:
        """Stop polling and wait for the in-flight cycle to finish.

        Every concurrent caller waits for the same loop task.
        """

        task = self._task
        if self._state is not None:
            self._state.running = False
        if self._wake is not None:
            self._wake.set()
        if task is None or task is asyncio.current_task():
            return

        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def _forget_task(self, task: asyncio.Task[None]) -> None:
        if self._task is task:
            self._task = None

    async def _run(self, state: PollerState, wake: asyncio.Event) -> None:
        try:
            while state.running:
                outcome = await self._poll_once(state)
                if not state.running:
                    break
                try:
                    await asyncio.wait_for(wake.wait(), timeout=outcome.delay.total_seconds)
                except TimeoutError:
                    pass
        finally:
            self._logger.info("AdaptivePoller stopped")

    async def _poll_once(self, state: PollerState) -> PollOutcome:
        assert self._operation is not None
        try:
            await self._operation()
        except Exception as exc:  # noqa: BLE001 - reported through callbacks, loop keeps going
            saturated = state.record_failure(self._clock(), self.options, self.calculator)
            delay = TimeSpan(state.current_delay_ms)
            if saturated:
                outcome = PollOutcome("saturated", delay, exc)
                self._notify(self._on_fail, exc)
            else:
                outcome = PollOutcome("recovering", delay, exc)
                self._notify(self._on_error, exc)
        else:
            state.record_success(self._clock(), self.options)
            outcome = PollOutcome("success", TimeSpan(state.current_delay_ms))

        self._notify(self._on_outcome, outcome)
        return outcome

    def _notify(self, callback: Callable[[Any], Any] | None, value: Any) -> None:
        if callback is None:
            return
        try:
            callback(value)
        except Exception:  # noqa: BLE001 - a broken callback must not end the loop
            self._logger.exception("AdaptivePoller callback raised")


__all__ = ["AdaptivePoller", "PollOutcome", "PollerOptions", "PollerState"]
