"""Retry and polling primitives built on asyncio."""

from .backoff import (
    BackoffCalculator,
    BackoffOptions,
    ExponentialBackoff,
    ExponentialBackoffCalculator,
    delay_schedule,
)
from .poller import AdaptivePoller, PollerOptions, PollerState, PollOutcome
from .tasks import create_interval, create_timeout, wait

__all__ = [
    "AdaptivePoller",
    "BackoffCalculator",
    "BackoffOptions",
    "ExponentialBackoff",
    "ExponentialBackoffCalculator",
    "PollOutcome",
    "PollerOptions",
    "PollerState",
    "create_interval",
    "create_timeout",
    "delay_schedule",
    "wait",
]
