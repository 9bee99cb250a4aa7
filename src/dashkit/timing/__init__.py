"""Time value types."""

from .rate import Rate, RateLimiter
from .timespan import TimeSpan

__all__ = ["Rate", "RateLimiter", "TimeSpan"]
