"""
Domain store base — the read path shared by every store.

A store owns one cache executor, its bookkeeping state and a rate-limit
gate. Subclasses describe only how to key and fetch a slice:

    class CuisineStore(DomainStore[str, list[Cuisine]]):
        name = "cuisines"

        def _cache_key(self, key: str) -> str:
            return key

        def _empty(self, key: str) -> list[Cuisine]:
            return []

        async def _fetch(self, key: str) -> Result[list[Cuisine], StoreError]:
            ...
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import ClassVar

from kungfu import LazyCoroResult, Result, Ok, Error

from menuteca import cache as C
from menuteca import lift as L
from menuteca._types import Clock, monotonic
from menuteca.gateway import Gateway, GatewayError, exception_error
from menuteca.stores._policy import StorePolicy
from menuteca.stores._types import (
    StoreError,
    StoreErrorKind,
    StoreErrors,
    StoreState,
    from_gateway,
)

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "Rate limited. Please wait before trying again."

# ═══════════════════════════════════════════════════════════════════════════════
# Rate-Limit Gate
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class RateLimitGate:
    """
    Blocks fetches for a fixed window after a throttling response.

    No timer: the flag clears on the first check made after the window.
    """

    cooldown: timedelta
    _reset_at: float | None = None

    def trip(self, now: float) -> float:
        self._reset_at = now + self.cooldown.total_seconds()
        return self._reset_at

    def reset_at(self, now: float) -> float | None:
        """When the gate opens again, or None when open."""
        if self._reset_at is not None and now >= self._reset_at:
            logger.info("Rate limit cooldown elapsed")
            self._reset_at = None
        return self._reset_at

    def check(self, now: float) -> bool:
        """True while fetches are blocked."""
        return self.reset_at(now) is not None

    def reset(self) -> None:
        self._reset_at = None


# ═══════════════════════════════════════════════════════════════════════════════
# Domain Store
# ═══════════════════════════════════════════════════════════════════════════════


class DomainStore[K, T](ABC):
    """
    Keyed, TTL-bounded store over the remote gateway.

    Reads never raise: a failed fetch is recorded in `state` and the caller
    gets the last known value (or the domain's empty value).
    """

    name: ClassVar[str] = "store"

    def __init__(
        self,
        gateway: Gateway,
        *,
        policy: StorePolicy,
        clock: Clock = monotonic,
    ) -> None:
        self._gateway = gateway
        self._policy = policy
        self._clock = clock
        self._gate = RateLimitGate(policy.rate_limit_cooldown)
        self._state = StoreState()
        self._pending = 0
        self._cache: C.CacheExecutor[K, T, StoreError] = (
            C.cache(self._cache_key, self._tracked)
            .tier(C.LocalTier[T](max_size=policy.max_entries))
            .ttl(delta=policy.ttl)
            .clock(clock)
            .build()
        )

    # ── subclass hooks ──────────────────────────────────────────────────────

    @abstractmethod
    def _cache_key(self, key: K) -> str: ...

    @abstractmethod
    def _empty(self, key: K) -> T: ...

    @abstractmethod
    async def _fetch(self, key: K) -> Result[T, StoreError]: ...

    # ── state ───────────────────────────────────────────────────────────────

    @property
    def policy(self) -> StorePolicy:
        return self._policy

    @property
    def state(self) -> StoreState:
        reset_at = self._gate.reset_at(self._clock())
        return replace(
            self._state,
            is_loading=self._pending > 0,
            rate_limited=reset_at is not None,
            rate_limit_reset_at=reset_at,
        )

    @property
    def is_loading(self) -> bool:
        return self._pending > 0

    @property
    def is_rate_limited(self) -> bool:
        return self._gate.check(self._clock())

    def clear_error(self) -> None:
        self._state = replace(self._state, error=None, last_error_at=None)

    def reset_failures(self) -> None:
        self._state = replace(self._state, failure_count=0)

    def clear_cache(self) -> None:
        """Drop every entry and reset bookkeeping (logout, pull-to-refresh)."""
        dropped = self._cache.clear()
        self._gate.reset()
        self._state = StoreState()
        logger.info("%s cache cleared (%d entries)", self.name, dropped)

    def remove_from_cache(self, key: K) -> bool:
        return self._cache.invalidate(key)

    # ── read path ───────────────────────────────────────────────────────────

    def _tracked(self, key: K) -> LazyCoroResult[T, StoreError]:
        # Runs once per coalesced fetch, so bookkeeping is not duplicated.
        async def execute() -> Result[T, StoreError]:
            self._begin()
            try:
                result = await L.guarded(
                    lambda: self._fetch(key),
                    on_error=StoreErrors.unexpected,
                )
            finally:
                self._pending -= 1

            match result:
                case Ok(_):
                    self._succeed()
                    return result
                case Error(e):
                    return Error(self._fail(e))

        return LazyCoroResult(execute)

    def _begin(self) -> None:
        self._pending += 1
        self._state = replace(self._state, error=None)

    def _succeed(self) -> None:
        self._state = replace(
            self._state, error=None, last_error_at=None, failure_count=0
        )

    def _fail(self, error: StoreError) -> StoreError:
        now = self._clock()
        failures = self._state.failure_count + 1
        logger.warning(
            "%s fetch failed (%d/%d): %s",
            self.name,
            failures,
            self._policy.max_failures,
            error.message,
        )

        if error.kind is StoreErrorKind.RATE_LIMITED:
            reset_at = self._gate.trip(now)
            logger.warning("%s rate limited until %.1f", self.name, reset_at)
            error = StoreErrors.rate_limited(RATE_LIMITED_MESSAGE)

        if failures >= self._policy.max_failures:
            error = StoreError(
                error.kind, f"Failed after {failures} attempts: {error.message}"
            )

        self._state = replace(
            self._state,
            error=error,
            last_error_at=now,
            failure_count=failures,
        )
        return error

    async def _read(self, key: K, *, force: bool = False) -> Result[T, StoreError]:
        # A fresh entry is served even while fetches are blocked.
        if not force and (cached := self._cache.peek(key)) is not None:
            return Ok(cached)
        if self._gate.check(self._clock()):
            logger.info("%s rate limited, skipping fetch", self.name)
            return Error(StoreErrors.rate_limited(RATE_LIMITED_MESSAGE))

        lookup = self._cache.refresh(key) if force else self._cache.get(key)
        result = await lookup
        match result:
            case Ok(hit):
                return Ok(hit.value)
            case Error(e):
                return Error(e)

    async def _load(self, key: K, *, force: bool = False) -> T:
        """Fresh value, else fetched value, else last known, else empty."""
        match await self._read(key, force=force):
            case Ok(value):
                return value
            case Error(_):
                return self._last_known(key)

    async def _call[R](
        self,
        call: Callable[[], Awaitable[Result[R, GatewayError]]],
        *,
        not_found: str | None = None,
        foreign_key: str | None = None,
    ) -> Result[R, StoreError]:
        """One guarded gateway round trip, errors mapped to StoreError."""
        result = await L.guarded(call, on_error=exception_error)
        match result:
            case Ok(value):
                return Ok(value)
            case Error(e) if foreign_key is not None and e.is_foreign_key:
                return Error(StoreErrors.not_found(foreign_key))
            case Error(e):
                return Error(from_gateway(e, not_found=not_found))

    def _last_known(self, key: K) -> T:
        value = self._cache.peek_stale(key)
        return value if value is not None else self._empty(key)

    def _patch(self, key: K, fn: Callable[[T], T]) -> bool:
        patched = self._cache.patch(key, fn)
        logger.debug(
            "%s cache patch %s: %s",
            self.name,
            self._cache_key(key),
            "applied" if patched else "no entry",
        )
        return patched


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("RateLimitGate", "DomainStore", "RATE_LIMITED_MESSAGE")
