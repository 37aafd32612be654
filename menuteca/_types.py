"""
Shared types: the Result vocabulary and the time source.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from kungfu import Result, Ok, Error, LazyCoroResult

type Lazy[T, E] = LazyCoroResult[T, E]
"""A remote read or write that has not run yet."""

type Clock = Callable[[], float]
"""Monotonic seconds source. Every TTL and cooldown check reads time through it."""

monotonic: Clock = time.monotonic

__all__ = (
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    "Lazy",
    "Clock",
    "monotonic",
)
