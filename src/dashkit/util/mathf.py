"""Small numeric helpers."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TypeVar

T = TypeVar("T")


def clamp(value: float, minimum: float, maximum: float) -> float:
    """Return `value` limited to the closed range [minimum, maximum]."""
    return min(max(value, minimum), maximum)


def lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation; `t` outside [0, 1] extrapolates."""
    return a + (b - a) * t


def max_by(items: Iterable[T], selector: Callable[[T], float]) -> T | None:
    """Return the first item with the highest selected value, or None when empty."""
    return max(items, key=selector, default=None)


def min_by(items: Iterable[T], selector: Callable[[T], float]) -> T | None:
    """Return the first item with the lowest selected value, or None when empty."""
    return min(items, key=selector, default=None)


__all__ = ["clamp", "lerp", "max_by", "min_by"]
