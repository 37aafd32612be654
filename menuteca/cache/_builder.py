"""
Cache builder — fluent API.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import timedelta

from kungfu import LazyCoroResult, Result, Ok, Error

from menuteca._types import Clock, monotonic
from menuteca.cache._inflight import InFlight
from menuteca.cache._types import (
    CacheEntry,
    CacheResult,
    LocalTier,
    Tier,
)

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Key Function Type
# ═══════════════════════════════════════════════════════════════════════════════

type KeyFn[K] = Callable[[K], str]

DEFAULT_TTL = timedelta(minutes=5)


def _duration(
    seconds: float | None,
    minutes: float | None,
    delta: timedelta | None,
) -> timedelta:
    if delta is not None:
        return delta
    return timedelta(seconds=(seconds or 0) + (minutes or 0) * 60)


# ═══════════════════════════════════════════════════════════════════════════════
# Cache Builder
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class Cache[K, T, E]:
    """
    Fluent cache builder.

    Type parameters:
        K: Key input type
        T: Value type
        E: Error type from fetch

    Example:
        menus = (
            C.cache(lambda rid: f"menus:{rid}", fetch_menus)
            .ttl(minutes=10)
            .clock(clock)
            .build()
        )
    """

    _key_fn: KeyFn[K]
    _fetch: Callable[[K], LazyCoroResult[T, E]]
    _tiers: tuple[Tier[T], ...]
    _ttl: timedelta = DEFAULT_TTL
    _clock: Clock = monotonic

    def tier(self, t: Tier[T]) -> Cache[K, T, E]:
        """Add cache tier."""
        return Cache(
            _key_fn=self._key_fn,
            _fetch=self._fetch,
            _tiers=(*self._tiers, t),
            _ttl=self._ttl,
            _clock=self._clock,
        )

    def ttl(
        self,
        *,
        seconds: float | None = None,
        minutes: float | None = None,
        delta: timedelta | None = None,
    ) -> Cache[K, T, E]:
        """
        Set how long a fetched value is trusted.

        Example:
            .ttl(minutes=10)
            .ttl(delta=timedelta(hours=1))
        """
        return Cache(
            _key_fn=self._key_fn,
            _fetch=self._fetch,
            _tiers=self._tiers,
            _ttl=_duration(seconds, minutes, delta),
            _clock=self._clock,
        )

    def clock(self, clock: Clock) -> Cache[K, T, E]:
        """Set time source (monotonic seconds)."""
        return Cache(
            _key_fn=self._key_fn,
            _fetch=self._fetch,
            _tiers=self._tiers,
            _ttl=self._ttl,
            _clock=clock,
        )

    def build(self) -> CacheExecutor[K, T, E]:
        """Build executable cache. Defaults to a single LocalTier."""
        tiers = self._tiers or (LocalTier[T](),)
        return CacheExecutor(
            key_fn=self._key_fn,
            tiers=tiers,
            fetch=self._fetch,
            ttl=self._ttl,
            clock=self._clock,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Cache Executor
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class CacheExecutor[K, T, E]:
    """Compiled cache executor."""

    key_fn: KeyFn[K]
    tiers: tuple[Tier[T], ...]
    fetch: Callable[[K], LazyCoroResult[T, E]]
    ttl: timedelta
    clock: Clock
    inflight: InFlight[T, E] = field(default_factory=InFlight)

    # ── reads ───────────────────────────────────────────────────────────────

    def _fresh(self, cache_key: str) -> tuple[CacheEntry[T], Tier[T]] | None:
        now = self.clock()
        for t in self.tiers:
            entry = t.get(cache_key)
            if entry is not None and entry.is_fresh(self.ttl, now):
                return entry, t
        return None

    def entry(self, key: K) -> CacheEntry[T] | None:
        """Raw entry from the first tier holding one, fresh or not."""
        cache_key = self.key_fn(key)
        for t in self.tiers:
            entry = t.get(cache_key)
            if entry is not None:
                return entry
        return None

    def peek(self, key: K) -> T | None:
        """Fresh cached value or None. Never fetches."""
        found = self._fresh(self.key_fn(key))
        return found[0].value if found is not None else None

    def peek_stale(self, key: K) -> T | None:
        """Last known value regardless of age."""
        entry = self.entry(key)
        return entry.value if entry is not None else None

    def is_pending(self, key: K) -> bool:
        return self.inflight.is_pending(self.key_fn(key))

    def values(self, *, fresh: bool = False) -> Iterator[T]:
        """Cached values of the first tier; fresh=True skips stale entries."""
        now = self.clock()
        for entry in self.tiers[0].entries():
            if not fresh or entry.is_fresh(self.ttl, now):
                yield entry.value

    def get(self, key: K) -> LazyCoroResult[CacheResult[T], E]:
        """
        Get value from cache.

        Fresh entry → hit without fetch. Otherwise joins the in-flight fetch
        for the same key or starts one; a successful fetch is stored in all
        tiers with fetched_at = now. A failed fetch leaves the cache untouched.
        """
        cache_key = self.key_fn(key)

        async def execute() -> Result[CacheResult[T], E]:
            found = self._fresh(cache_key)
            if found is not None:
                entry, t = found
                logger.debug("Cache hit %s (tier=%s)", cache_key, t.name)
                return Ok(CacheResult(
                    value=entry.value,
                    hit=True,
                    tier=t.name,
                    ttl_remaining=entry.remaining(self.ttl, self.clock()),
                ))
            return await self._load(key, cache_key)

        return LazyCoroResult(execute)

    def refresh(self, key: K) -> LazyCoroResult[CacheResult[T], E]:
        """Fetch ignoring freshness (still coalesced with in-flight fetches)."""
        cache_key = self.key_fn(key)

        async def execute() -> Result[CacheResult[T], E]:
            return await self._load(key, cache_key)

        return LazyCoroResult(execute)

    async def _load(self, key: K, cache_key: str) -> Result[CacheResult[T], E]:
        async def fetch_and_store() -> Result[T, E]:
            logger.debug("Cache miss %s, fetching", cache_key)
            result = await self.fetch(key)
            match result:
                case Ok(value):
                    self._store(cache_key, value)
            return result

        result, shared = await self.inflight.join(cache_key, fetch_and_store)
        match result:
            case Ok(value):
                return Ok(CacheResult(
                    value=value,
                    hit=False,
                    tier=None,
                    ttl_remaining=self.ttl,
                    shared=shared,
                ))
            case Error(e):
                return Error(e)

    # ── writes ──────────────────────────────────────────────────────────────

    def _store(self, cache_key: str, value: T) -> None:
        entry = CacheEntry(key=cache_key, value=value, fetched_at=self.clock())
        for t in self.tiers:
            t.set(cache_key, entry)

    def put(self, key: K, value: T) -> None:
        """Store value as freshly fetched."""
        self._store(self.key_fn(key), value)

    def patch(self, key: K, fn: Callable[[T], T]) -> bool:
        """
        Replace the cached value in place, keeping its fetch time.

        Returns False (and writes nothing) when no entry exists.
        """
        cache_key = self.key_fn(key)
        patched = False
        for t in self.tiers:
            entry = t.get(cache_key)
            if entry is not None:
                t.set(cache_key, entry.with_value(fn(entry.value)))
                patched = True
        return patched

    def invalidate(self, key: K) -> bool:
        """Invalidate key in all tiers."""
        cache_key = self.key_fn(key)
        deleted = False
        for t in self.tiers:
            if t.delete(cache_key):
                deleted = True
        return deleted

    def invalidate_pattern(self, pattern: str) -> int:
        """Invalidate keys matching glob pattern in all tiers."""
        return sum(t.delete_pattern(pattern) for t in self.tiers)

    def clear(self) -> int:
        """Drop every entry in every tier."""
        return sum(t.clear() for t in self.tiers)


# ═══════════════════════════════════════════════════════════════════════════════
# cache() — Entry Point (Type-Safe)
# ═══════════════════════════════════════════════════════════════════════════════


def cache[K, T, E](
    key: KeyFn[K],
    fetch: Callable[[K], LazyCoroResult[T, E]],
) -> Cache[K, T, E]:
    """
    Create cache builder with key function and fetch.

    Types are inferred from arguments — no manual annotation needed.

    Example:
        from menuteca import cache as C

        def fetch_menus(restaurant_id: str) -> LazyCoroResult[list[Menu], StoreError]:
            return L.guarded(...)

        menu_cache = (
            C.cache(lambda rid: f"menus:{rid}", fetch_menus)
            .tier(C.LocalTier(max_size=200))
            .ttl(minutes=10)
            .build()
        )

        result = await menu_cache.get(restaurant_id)
    """
    return Cache(
        _key_fn=key,
        _fetch=fetch,
        _tiers=(),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("Cache", "CacheExecutor", "cache", "KeyFn", "DEFAULT_TTL")
