"""
Cache — keyed TTL cache with in-flight coalescing.

    from menuteca import cache as C

    menus = C.cache(key_fn, fetch_fn).ttl(minutes=10).build()
    result = await menus.get(restaurant_id)
    cached = menus.peek(restaurant_id)   # synchronous, never fetches
"""

from __future__ import annotations

from menuteca.cache._types import (
    CacheEntry,
    Tier,
    LocalTier,
    CacheResult,
)
from menuteca.cache._inflight import InFlight
from menuteca.cache._builder import cache, Cache, CacheExecutor, KeyFn, DEFAULT_TTL

__all__ = (
    "CacheEntry",
    "Tier",
    "LocalTier",
    "CacheResult",
    "InFlight",
    "cache",
    "Cache",
    "CacheExecutor",
    "KeyFn",
    "DEFAULT_TTL",
)
