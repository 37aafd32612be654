"""
Cache types: entries, storage tiers, lookup outcomes.
"""

from __future__ import annotations

import fnmatch
from collections import OrderedDict
from collections.abc import Iterator
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Protocol

# ═══════════════════════════════════════════════════════════════════════════════
# Entry
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CacheEntry[T]:
    """
    Cached payload with the time of its last successful fetch.

    Note: value is only trusted while now - fetched_at < ttl.
    """

    key: str
    value: T
    fetched_at: float

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_fresh(self, ttl: timedelta, now: float) -> bool:
        return self.age(now) < ttl.total_seconds()

    def remaining(self, ttl: timedelta, now: float) -> timedelta:
        return timedelta(seconds=max(0.0, ttl.total_seconds() - self.age(now)))

    def with_value(self, value: T) -> CacheEntry[T]:
        """Patch value, keeping the original fetch time."""
        return replace(self, value=value)


# ═══════════════════════════════════════════════════════════════════════════════
# Storage Tier
# ═══════════════════════════════════════════════════════════════════════════════


class Tier[T](Protocol):
    """
    Where a store keeps its entries.

    Synchronous: lookups happen inside store actions that must not yield
    between the freshness check and the read.
    """

    @property
    def name(self) -> str: ...

    def get(self, key: str) -> CacheEntry[T] | None:
        """Entry for key, fresh or not, or None."""
        ...

    def set(self, key: str, entry: CacheEntry[T]) -> None: ...

    def delete(self, key: str) -> bool:
        """True when the key was present."""
        ...

    def delete_pattern(self, pattern: str) -> int:
        """Drop keys matching a glob such as "menus:r01:*"; returns how many."""
        ...

    def clear(self) -> int: ...

    def entries(self) -> Iterator[CacheEntry[T]]:
        """Snapshot of entries, least recently used first."""
        ...


class LocalTier[T]:
    """
    Process-memory tier with least-recently-used eviction.

    Example:
        tier = LocalTier[list[Menu]](max_size=200)
    """

    def __init__(self, max_size: int = 1000) -> None:
        self._max_size = max_size
        self._entries: OrderedDict[str, CacheEntry[T]] = OrderedDict()

    @property
    def name(self) -> str:
        return "local"

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> CacheEntry[T] | None:
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def set(self, key: str, entry: CacheEntry[T]) -> None:
        self._entries[key] = entry
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_pattern(self, pattern: str) -> int:
        matched = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
        for key in matched:
            del self._entries[key]
        return len(matched)

    def clear(self) -> int:
        dropped = len(self._entries)
        self._entries.clear()
        return dropped

    def entries(self) -> Iterator[CacheEntry[T]]:
        return iter(list(self._entries.values()))


# ═══════════════════════════════════════════════════════════════════════════════
# Lookup Outcome
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CacheResult[T]:
    """
    What a cached read produced.

    hit is True when no fetch ran; shared is True when this caller joined a
    fetch another caller had already started.
    """

    value: T
    hit: bool
    tier: str | None
    ttl_remaining: timedelta | None
    shared: bool = False


__all__ = (
    "CacheEntry",
    "Tier",
    "LocalTier",
    "CacheResult",
)
