"""Immutable non-negative time interval measured in milliseconds."""

from __future__ import annotations

from datetime import timedelta
from functools import total_ordering

_MS_PER_SECOND = 1000
_MS_PER_MINUTE = 60 * _MS_PER_SECOND
_MS_PER_HOUR = 60 * _MS_PER_MINUTE
_MS_PER_DAY = 24 * _MS_PER_HOUR


@total_ordering
class TimeSpan:
    """A time interval that can never be negative.

    Arithmetic returns new instances; subtracting a longer span from a
    shorter one raises ``ValueError`` just like constructing a negative span.
    """

    __slots__ = ("_ms",)

    def __init__(self, milliseconds: float = 0) -> None:
        if milliseconds < 0:
            raise ValueError("Milliseconds cannot be negative")
        self._ms = float(milliseconds)

    @classmethod
    def zero(cls) -> "TimeSpan":
        return cls(0)

    @classmethod
    def from_timespan(cls, other: "TimeSpan") -> "TimeSpan":
        return cls(other.total_milliseconds)

    @classmethod
    def from_days(cls, days: float) -> "TimeSpan":
        return cls(days * _MS_PER_DAY)

    @classmethod
    def from_hours(cls, hours: float) -> "TimeSpan":
        return cls(hours * _MS_PER_HOUR)

    @classmethod
    def from_minutes(cls, minutes: float) -> "TimeSpan":
        return cls(minutes * _MS_PER_MINUTE)

    @classmethod
    def from_seconds(cls, seconds: float) -> "TimeSpan":
        return cls(seconds * _MS_PER_SECOND)

    @classmethod
    def from_milliseconds(cls, milliseconds: float) -> "TimeSpan":
        return cls(milliseconds)

    @classmethod
    def from_timedelta(cls, delta: timedelta) -> "TimeSpan":
        return cls(delta.total_seconds() * _MS_PER_SECOND)

    @property
    def total_milliseconds(self) -> float:
        return self._ms

    @property
    def total_seconds(self) -> float:
        return self._ms / _MS_PER_SECOND

    @property
    def total_minutes(self) -> float:
        return self._ms / _MS_PER_MINUTE

    @property
    def total_hours(self) -> float:
        return self._ms / _MS_PER_HOUR

    @property
    def total_days(self) -> float:
        return self._ms / _MS_PER_DAY

    def to_timedelta(self) -> timedelta:
        return timedelta(milliseconds=self._ms)

    def add(self, other: "TimeSpan") -> "TimeSpan":
        """Return the sum of this span and ``other``."""
        return TimeSpan(self._ms + other._ms)

    def subtract(self, other: "TimeSpan") -> "TimeSpan":
        """Return the difference, raising ``ValueError`` if it would be negative."""
        return TimeSpan(self._ms - other._ms)

    def equals(self, other: "TimeSpan") -> bool:
        return self._ms == other._ms

    def __add__(self, other: object) -> "TimeSpan":
        if not isinstance(other, TimeSpan):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: object) -> "TimeSpan":
        if not isinstance(other, TimeSpan):
            return NotImplemented
        return self.subtract(other)

    def __mul__(self, factor: object) -> "TimeSpan":
        if isinstance(factor, bool) or not isinstance(factor, (int, float)):
            return NotImplemented
        return TimeSpan(self._ms * factor)

    __rmul__ = __mul__

    def __truediv__(self, divisor: object) -> "TimeSpan":
        if isinstance(divisor, bool) or not isinstance(divisor, (int, float)):
            return NotImplemented
        return TimeSpan(self._ms / divisor)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeSpan):
            return NotImplemented
        return self._ms == other._ms

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, TimeSpan):
            return NotImplemented
        return self._ms < other._ms

    def __hash__(self) -> int:
        return hash(self._ms)

    def __float__(self) -> float:
        return self._ms

    def __bool__(self) -> bool:
        return self._ms > 0

    def __repr__(self) -> str:
        return f"TimeSpan({self._ms:g}ms)"


__all__ = ["TimeSpan"]
