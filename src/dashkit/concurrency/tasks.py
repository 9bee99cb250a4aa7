"""asyncio timing helpers taking :class:`TimeSpan` values."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from dashkit.timing.timespan import TimeSpan


async def wait(span: TimeSpan) -> None:
    """Suspend the current task for `span`."""
    await asyncio.sleep(span.total_seconds)


def create_timeout(callback: Callable[[], object], span: TimeSpan) -> asyncio.TimerHandle:
    """Run `callback` once after `span`; cancel the returned handle to abort."""
    loop = asyncio.get_running_loop()
    return loop.call_later(span.total_seconds, callback)


def create_interval(callback: Callable[[], object], span: TimeSpan) -> asyncio.Task[None]:
    """Run `callback` every `span` until the returned task is cancelled."""

    async def _tick() -> None:
        while True:
            await asyncio.sleep(span.total_seconds)
            callback()

    return asyncio.get_running_loop().create_task(_tick())


__all__ = ["create_interval", "create_timeout", "wait"]
