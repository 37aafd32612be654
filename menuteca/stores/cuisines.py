"""
Cuisine store — the cuisine catalogue, one list for the whole app.

Names arrive as translation maps and are localized at fetch time, so a
language change calls refresh_cuisines().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kungfu import Result, Ok, Error

from menuteca._types import Clock, monotonic
from menuteca.gateway import Gateway, Query, Row
from menuteca.localize import Language, localized
from menuteca.stores._base import DomainStore
from menuteca.stores._policy import CUISINES, StorePolicy
from menuteca.stores._types import StoreError
from menuteca.stores.users import UserStore

logger = logging.getLogger(__name__)

CATALOGUE = "cuisines"


@dataclass(frozen=True, slots=True)
class Cuisine:
    id: str
    name: str
    image: str | None = None

    @classmethod
    def from_row(cls, row: Row, language: Language) -> Cuisine:
        return cls(
            id=row["id"],
            name=localized(row.get("name"), language),
            image=row.get("image"),
        )


def _matching(rows: list[Row], term: str, language: Language) -> list[Row]:
    return [r for r in rows if term in localized(r.get("name"), language).lower()]


class CuisineStore(DomainStore[str, list[Cuisine]]):
    name = "cuisines"

    def __init__(
        self,
        gateway: Gateway,
        users: UserStore,
        *,
        policy: StorePolicy = CUISINES,
        clock: Clock = monotonic,
    ) -> None:
        super().__init__(gateway, policy=policy, clock=clock)
        self._users = users

    def _cache_key(self, key: str) -> str:
        return key

    def _empty(self, key: str) -> list[Cuisine]:
        return []

    async def _fetch(self, key: str) -> Result[list[Cuisine], StoreError]:
        language = self._users.language
        logger.info("Fetching cuisines (%s)", language)
        match await self._all_rows():
            case Ok(rows):
                return Ok([Cuisine.from_row(row, language) for row in rows])
            case Error(e):
                return Error(e)

    async def _all_rows(self) -> Result[list[Row], StoreError]:
        query = Query("cuisines").order_by("created_at")
        match await self._call(lambda: self._gateway.select(query)):
            case Ok(rows):
                return Ok(rows.data)
            case Error(e):
                return Error(e)

    async def fetch_cuisines(self) -> list[Cuisine]:
        return await self._load(CATALOGUE)

    async def refresh_cuisines(self, language: Language | None = None) -> list[Cuisine]:
        """Re-fetch ignoring freshness. Usable as a language-change listener."""
        return await self._load(CATALOGUE, force=True)

    def get_cuisine_by_id(self, cuisine_id: str) -> Cuisine | None:
        for cuisine in self._cache.peek(CATALOGUE) or ():
            if cuisine.id == cuisine_id:
                return cuisine
        return None

    async def search_cuisines(self, query: str, limit: int | None = None) -> list[Cuisine]:
        """
        Match localized names over every cuisine row; on failure, filter the cached list.

        Never raises and never records an error in state.
        """
        term = query.strip().lower()
        language = self._users.language

        if not self.is_rate_limited:
            match await self._all_rows():
                case Ok(rows):
                    found = [Cuisine.from_row(r, language) for r in _matching(rows, term, language)]
                    return found[:limit] if limit and limit > 0 else found
                case Error(e):
                    logger.warning("Cuisine search failed, using cached list: %s", e)

        cached = self._cache.peek_stale(CATALOGUE) or []
        found = [c for c in cached if term in c.name.lower()]
        return found[:limit] if limit and limit > 0 else found

    def clear_cuisines(self) -> None:
        self.clear_cache()


__all__ = ("Cuisine", "CuisineStore", "CATALOGUE")
