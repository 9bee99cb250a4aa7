from __future__ import annotations

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

from dashkit.concurrency.backoff import ExponentialBackoffCalculator
from dashkit.concurrency.poller import AdaptivePoller, PollerOptions, PollerState, PollOutcome
from dashkit.timing.timespan import TimeSpan


def _options(**overrides) -> PollerOptions:
    values = dict(
        initial_delay=TimeSpan(1000),
        max_delay=TimeSpan(5000),
        factor=2,
        reset_period=TimeSpan.from_minutes(5),
        linear_step=TimeSpan(1000),
    )
    values.update(overrides)
    return PollerOptions(**values)


def _fast_options(**overrides) -> PollerOptions:
    values = dict(
        initial_delay=TimeSpan(1),
        max_delay=TimeSpan(8),
        factor=2,
        reset_period=TimeSpan.from_minutes(5),
        linear_step=TimeSpan(1),
    )
    values.update(overrides)
    return PollerOptions(**values)


class PollerOptionsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        options = PollerOptions()
        self.assertEqual(options.initial_delay, TimeSpan.from_seconds(1))
        self.assertEqual(options.max_delay, TimeSpan.from_minutes(1))
        self.assertEqual(options.factor, 1.5)
        self.assertEqual(options.reset_period, TimeSpan.from_minutes(5))
        self.assertEqual(options.linear_step, TimeSpan.from_seconds(1))
        self.assertIsNone(options.logger)

    def test_rejects_inverted_bounds(self) -> None:
        with self.assertRaises(ValueError):
            _options(initial_delay=TimeSpan(6000))

    def test_rejects_non_positive_factor(self) -> None:
        with self.assertRaises(ValueError):
            _options(factor=-1)


class PollerStateTests(unittest.TestCase):
    def setUp(self) -> None:
        self.calculator = ExponentialBackoffCalculator()

    def test_success_after_quiet_period_steps_down(self) -> None:
        options = _options(reset_period=TimeSpan(0), linear_step=TimeSpan(200))
        state = PollerState(current_delay_ms=1800, last_failure_at=10.0)
        state.record_success(10.0, options)
        self.assertEqual(state.current_delay_ms, 1600)

    def test_success_inside_quiet_period_keeps_delay(self) -> None:
        options = _options()
        state = PollerState(current_delay_ms=4000, last_failure_at=100.0)

        state.record_success(200.0, options)
        self.assertEqual(state.current_delay_ms, 4000)

        state.record_success(400.0, options)
        self.assertEqual(state.current_delay_ms, 3000)

    def test_success_without_any_failure_counts_as_quiet(self) -> None:
        state = PollerState(current_delay_ms=3000)
        state.record_success(0.0, _options())
        self.assertEqual(state.current_delay_ms, 2000)

    def test_delay_never_drops_below_initial(self) -> None:
        options = _options(reset_period=TimeSpan(0), linear_step=TimeSpan(200))
        state = PollerState(current_delay_ms=1100)
        state.record_success(0.0, options)
        self.assertEqual(state.current_delay_ms, 1000)
        state.record_success(0.0, options)
        self.assertEqual(state.current_delay_ms, 1000)

    def test_failures_grow_until_saturated(self) -> None:
        options = _options()
        state = PollerState(current_delay_ms=1000)

        results = []
        for now in range(4):
            saturated = state.record_failure(float(now), options, self.calculator)
            results.append((state.current_delay_ms, saturated))

        self.assertEqual(results, [(2000, False), (4000, False), (5000, True), (5000, True)])
        self.assertEqual(state.last_failure_at, 3.0)

    def test_reaching_ceiling_exactly_saturates(self) -> None:
        options = _options(max_delay=TimeSpan(4000))
        state = PollerState(current_delay_ms=2000)
        self.assertTrue(state.record_failure(0.0, options, self.calculator))
        self.assertEqual(state.current_delay_ms, 4000)

    def test_recovers_monotonically_to_initial(self) -> None:
        options = _options(reset_period=TimeSpan(0))
        state = PollerState(current_delay_ms=1000)
        state.record_failure(0.0, options, self.calculator)
        state.record_failure(0.0, options, self.calculator)

        delays = []
        for _ in range(5):
            state.record_success(1.0, options)
            delays.append(state.current_delay_ms)

        self.assertEqual(delays, [3000, 2000, 1000, 1000, 1000])


class AdaptivePollerTests(unittest.IsolatedAsyncioTestCase):
    async def test_callbacks_follow_error_then_fail(self) -> None:
        events: list[str] = []
        outcomes: list[PollOutcome] = []
        done = asyncio.Event()

        def on_outcome(outcome: PollOutcome) -> None:
            outcomes.append(outcome)
            events.append(outcome.kind)
            if len(outcomes) >= 4:
                done.set()

        poller = AdaptivePoller(_fast_options())
        poller.start(
            AsyncMock(side_effect=ValueError("down")),
            on_error=lambda exc: events.append("error"),
            on_fail=lambda exc: events.append("fail"),
            on_outcome=on_outcome,
        )
        await asyncio.wait_for(done.wait(), 2)
        await poller.stop()

        self.assertEqual(
            events[:8],
            ["error", "recovering", "error", "recovering", "fail", "saturated", "fail", "saturated"],
        )
        self.assertEqual([o.delay for o in outcomes[:4]], [TimeSpan(2), TimeSpan(4), TimeSpan(8), TimeSpan(8)])
        self.assertIsInstance(outcomes[0].error, ValueError)

    async def test_success_reports_outcome_without_error(self) -> None:
        outcomes: list[PollOutcome] = []
        done = asyncio.Event()

        def on_outcome(outcome: PollOutcome) -> None:
            outcomes.append(outcome)
            done.set()

        on_error = MagicMock()
        poller = AdaptivePoller(_fast_options())
        poller.start(AsyncMock(return_value=None), on_error=on_error, on_outcome=on_outcome)
        await asyncio.wait_for(done.wait(), 2)
        await poller.stop()

        self.assertEqual(outcomes[0].kind, "success")
        self.assertIsNone(outcomes[0].error)
        self.assertEqual(outcomes[0].delay, TimeSpan(1))
        on_error.assert_not_called()

    async def test_second_start_is_ignored(self) -> None:
        first = AsyncMock(return_value=None)
        second = AsyncMock(return_value=None)
        poller = AdaptivePoller(_options(initial_delay=TimeSpan.from_seconds(30), max_delay=TimeSpan.from_seconds(60)))
        poller.start(first)

        with self.assertLogs("dashkit.concurrency.poller", "WARNING") as captured:
            poller.start(second)

        self.assertIn("already running", captured.output[0])
        self.assertIs(poller.operation, first)
        await poller.stop()
        second.assert_not_called()

    async def test_stop_waits_for_in_flight_operation(self) -> None:
        started = asyncio.Event()
        release = asyncio.Event()
        finished: list[bool] = []
        calls = 0

        async def operation() -> None:
            nonlocal calls
            calls += 1
            started.set()
            await release.wait()
            finished.append(True)

        poller = AdaptivePoller(_fast_options())
        poller.start(operation)
        await asyncio.wait_for(started.wait(), 1)

        stopping = asyncio.create_task(poller.stop())
        for _ in range(5):
            await asyncio.sleep(0)
        self.assertFalse(stopping.done())
        self.assertFalse(poller.is_polling)

        release.set()
        await asyncio.wait_for(stopping, 1)
        self.assertEqual(finished, [True])

        await asyncio.sleep(0.03)
        self.assertEqual(calls, 1)
        self.assertEqual(finished, [True])

    async def test_start_while_stopping_is_ignored(self) -> None:
        started = asyncio.Event()
        release = asyncio.Event()
        active = 0
        peak = 0

        async def operation() -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            started.set()
            try:
                await release.wait()
            finally:
                active -= 1

        second = AsyncMock(return_value=None)
        poller = AdaptivePoller(_fast_options())
        poller.start(operation)
        await asyncio.wait_for(started.wait(), 1)

        stopping = asyncio.create_task(poller.stop())
        await asyncio.sleep(0)
        with self.assertLogs("dashkit.concurrency.poller", "WARNING"):
            poller.start(second)

        release.set()
        await asyncio.wait_for(stopping, 1)
        await asyncio.sleep(0.03)

        self.assertEqual(peak, 1)
        second.assert_not_called()
        self.assertIs(poller.operation, operation)
        self.assertFalse(poller.is_polling)

    async def test_concurrent_stops_all_wait_for_running_cycle(self) -> None:
        started = asyncio.Event()
        release = asyncio.Event()
        finished: list[bool] = []
        logger = MagicMock()

        async def operation() -> None:
            started.set()
            await release.wait()
            finished.append(True)

        poller = AdaptivePoller(_fast_options(logger=logger))
        poller.start(operation)
        await asyncio.wait_for(started.wait(), 1)

        first = asyncio.create_task(poller.stop())
        second = asyncio.create_task(poller.stop())
        for _ in range(5):
            await asyncio.sleep(0)
        self.assertFalse(first.done())
        self.assertFalse(second.done())

        release.set()
        await asyncio.wait_for(asyncio.gather(first, second), 1)

        self.assertEqual(finished, [True])
        stopped = [c for c in logger.info.call_args_list if c.args[0] == "AdaptivePoller stopped"]
        self.assertEqual(len(stopped), 1)

    async def test_stop_wakes_long_sleep(self) -> None:
        done = asyncio.Event()
        poller = AdaptivePoller(
            _options(initial_delay=TimeSpan.from_minutes(10), max_delay=TimeSpan.from_minutes(20))
        )
        poller.start(AsyncMock(return_value=None), on_outcome=lambda outcome: done.set())
        await asyncio.wait_for(done.wait(), 1)

        await asyncio.wait_for(poller.stop(), 1)
        self.assertFalse(poller.is_polling)
        self.assertEqual(poller.current_delay, TimeSpan.from_minutes(10))

    async def test_raising_callback_does_not_end_loop(self) -> None:
        outcomes: list[PollOutcome] = []
        done = asyncio.Event()

        def on_outcome(outcome: PollOutcome) -> None:
            outcomes.append(outcome)
            if len(outcomes) >= 3:
                done.set()

        def on_error(exc: Exception) -> None:
            raise RuntimeError("callback broke")

        poller = AdaptivePoller(_fast_options())
        with self.assertLogs("dashkit.concurrency.poller", "ERROR") as captured:
            poller.start(AsyncMock(side_effect=ValueError("down")), on_error=on_error, on_outcome=on_outcome)
            await asyncio.wait_for(done.wait(), 2)
            await poller.stop()

        self.assertGreaterEqual(len(outcomes), 3)
        self.assertTrue(any("callback raised" in line for line in captured.output))

    async def test_uses_logger_from_options(self) -> None:
        logger = MagicMock()
        poller = AdaptivePoller(_options(logger=logger, initial_delay=TimeSpan.from_minutes(1), max_delay=TimeSpan.from_minutes(2)))
        poller.start(AsyncMock(return_value=None))
        poller.start(AsyncMock(return_value=None))
        await poller.stop()

        logger.warning.assert_called_once()
        self.assertEqual(
            [call.args[0] for call in logger.info.call_args_list],
            ["AdaptivePoller started", "AdaptivePoller stopped"],
        )

    async def test_stop_before_start_is_noop(self) -> None:
        poller = AdaptivePoller()
        await poller.stop()
        self.assertFalse(poller.is_polling)
        self.assertEqual(poller.current_delay, TimeSpan.from_seconds(1))

    async def test_can_restart_after_stop(self) -> None:
        done = asyncio.Event()
        poller = AdaptivePoller(_fast_options())
        poller.start(AsyncMock(side_effect=ValueError("down")))
        await asyncio.sleep(0.02)
        await poller.stop()
        self.assertGreater(poller.current_delay, TimeSpan(1))

        poller.start(AsyncMock(return_value=None), on_outcome=lambda outcome: done.set())
        self.assertTrue(poller.is_polling)
        self.assertEqual(poller.current_delay, TimeSpan(1))
        await asyncio.wait_for(done.wait(), 1)
        await poller.stop()


class AdaptivePollerWithoutLoopTests(unittest.TestCase):
    def test_start_requires_running_loop(self) -> None:
        with self.assertRaises(RuntimeError):
            AdaptivePoller().start(AsyncMock())


if __name__ == "__main__":
    unittest.main()
