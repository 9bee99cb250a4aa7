"""Shared typing helpers for dashkit modules."""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Protocol, TypeVar, runtime_checkable

T_co = TypeVar("T_co", covariant=True)
P_contra = TypeVar("P_contra", contravariant=True)


@runtime_checkable
class Factory(Protocol[T_co]):
    """Objects that build a product, synchronously or asynchronously."""

    def create(self) -> T_co | Awaitable[T_co]:
        """Return a new product or an awaitable resolving to one."""
        ...


@runtime_checkable
class PayloadedFactory(Protocol[T_co, P_contra]):
    """Factories whose products depend on a caller supplied payload."""

    def create(self, params: P_contra) -> T_co | Awaitable[T_co]:
        ...


__all__ = ["Factory", "PayloadedFactory"]
