"""
Store policy — freshness and backoff configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta


def _duration(
    seconds: float | None,
    minutes: float | None,
    hours: float | None,
    delta: timedelta | None,
) -> timedelta:
    if delta is not None:
        return delta
    return timedelta(
        seconds=(seconds or 0) + (minutes or 0) * 60 + (hours or 0) * 3600
    )


@dataclass(frozen=True, slots=True)
class StorePolicy:
    """
    Per-store freshness policy.

    Fluent builder pattern — chain methods to configure.

    Example:
        policy = (
            StorePolicy()
            .with_ttl(minutes=10)
            .with_cooldown(seconds=60)
            .with_max_failures(3)
            .with_max_entries(200)
        )

    Note: Immutable — each method returns new StorePolicy.
    """

    ttl: timedelta = timedelta(minutes=5)
    rate_limit_cooldown: timedelta = timedelta(seconds=60)
    max_failures: int = 3
    max_entries: int = 1000

    def with_ttl(
        self,
        *,
        seconds: float | None = None,
        minutes: float | None = None,
        hours: float | None = None,
        delta: timedelta | None = None,
    ) -> StorePolicy:
        """
        Set how long a fetched value is served without a network call.

        Example:
            .with_ttl(minutes=10)   # menus
            .with_ttl(hours=1)      # cuisines
        """
        return replace(self, ttl=_duration(seconds, minutes, hours, delta))

    def with_cooldown(
        self,
        *,
        seconds: float | None = None,
        delta: timedelta | None = None,
    ) -> StorePolicy:
        """Set how long fetches are blocked after a throttling response."""
        return replace(
            self, rate_limit_cooldown=_duration(seconds, None, None, delta)
        )

    def with_max_failures(self, n: int) -> StorePolicy:
        """Consecutive failures after which the error message says so."""
        return replace(self, max_failures=n)

    def with_max_entries(self, n: int) -> StorePolicy:
        """Cached keys kept before the least recently used one is dropped."""
        return replace(self, max_entries=n)


RESTAURANTS = StorePolicy().with_ttl(minutes=5)
MENUS = StorePolicy().with_ttl(minutes=10)
CUISINES = StorePolicy().with_ttl(hours=1)
ADDRESSES = StorePolicy().with_ttl(minutes=5)


__all__ = (
    "StorePolicy",
    "RESTAURANTS",
    "MENUS",
    "CUISINES",
    "ADDRESSES",
)
