"""
Restaurant store — paged, filtered restaurant lists.

Each distinct filter set is its own cache entry. A targeted lookup by id
scans whatever fresh lists are already cached instead of hitting the
network.

    page = await restaurants.fetch_page(RestaurantFilters(page=1, limit=20))
    cached = restaurants.get_restaurant_by_id(page.restaurants[0].id)
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from kungfu import Result, Ok, Error

from menuteca import lift as L
from menuteca._types import Clock, monotonic
from menuteca.gateway import Gateway, Query, Row, exception_error
from menuteca.geo import Coordinates, haversine_km
from menuteca.stores._base import DomainStore
from menuteca.stores._policy import RESTAURANTS, StorePolicy
from menuteca.stores._types import StoreError, StoreErrorKind, StoreErrors, from_gateway

logger = logging.getLogger(__name__)

SORT_FIELDS = ("created_at", "rating", "minimum_price", "name")
DEFAULT_SORT = "created_at"
DEFAULT_PAGE_SIZE = 20
MIN_SEARCH_LENGTH = 2

# ═══════════════════════════════════════════════════════════════════════════════
# Models
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class RestaurantFilters:
    """
    List query parameters. Two filter sets with the same non-null fields
    share a cache entry.
    """

    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    sort_by: str | None = None
    sort_order: Literal["asc", "desc"] | None = None
    cuisine_id: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    min_rating: float | None = None
    tags: tuple[str, ...] | None = None
    latitude: float | None = None
    longitude: float | None = None
    radius: float | None = None
    search: str | None = None

    def cache_key(self) -> str:
        fields = {k: v for k, v in sorted(asdict(self).items()) if v is not None}
        return json.dumps(fields, sort_keys=True)

    @property
    def origin(self) -> Coordinates | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class Restaurant:
    id: str
    name: str
    minimum_price: float | None = None
    cuisine_id: str | None = None
    rating: float | None = None
    main_image: str | None = None
    profile_image: str | None = None
    images: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    address: str | None = None
    coordinates: Coordinates | None = None
    distance: float | None = None
    owner_id: str | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: Row, origin: Coordinates | None = None) -> Restaurant:
        coordinates = _coordinates(row.get("coordinates"))
        distance = None
        if origin is not None and coordinates is not None:
            distance = haversine_km(origin, coordinates)
        return cls(
            id=row["id"],
            name=row.get("name") or "",
            minimum_price=row.get("minimum_price"),
            cuisine_id=row.get("cuisine_id"),
            rating=row.get("rating"),
            main_image=row.get("main_image"),
            profile_image=row.get("profile_image"),
            images=tuple(row.get("images") or ()),
            tags=tuple(row.get("tags") or ()),
            address=row.get("address"),
            coordinates=coordinates,
            distance=distance,
            owner_id=row.get("owner_id"),
            created_at=row.get("created_at"),
        )


def _coordinates(value: Any) -> Coordinates | None:
    if not isinstance(value, dict):
        return None
    try:
        return Coordinates(float(value["latitude"]), float(value["longitude"]))
    except (KeyError, TypeError, ValueError):
        return None


@dataclass(frozen=True, slots=True)
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def of(cls, page: int, limit: int, total: int) -> Pagination:
        total_pages = math.ceil(total / limit) if limit > 0 else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


@dataclass(frozen=True, slots=True)
class RestaurantPage:
    restaurants: list[Restaurant] = field(default_factory=list[Restaurant])
    pagination: Pagination | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Query Translation
# ═══════════════════════════════════════════════════════════════════════════════


def list_query(filters: RestaurantFilters) -> Query:
    """Gateway select for one page of active restaurants."""
    query = (
        Query("restaurants")
        .eq("is_active", True)
        .is_null("deleted_at")
        .with_count()
    )
    if filters.cuisine_id:
        query = query.eq("cuisine_id", filters.cuisine_id)
    if filters.min_price is not None:
        query = query.gte("minimum_price", filters.min_price)
    if filters.max_price is not None:
        query = query.lte("minimum_price", filters.max_price)
    if filters.min_rating is not None:
        query = query.gte("rating", filters.min_rating)
    if filters.tags:
        query = query.contains("tags", list(filters.tags))
    if filters.search:
        query = query.ilike("name", f"%{filters.search}%")

    sort = filters.sort_by if filters.sort_by in SORT_FIELDS else DEFAULT_SORT
    query = query.order_by(sort, descending=filters.sort_order != "asc")

    offset = (filters.page - 1) * filters.limit
    return query.range(offset, offset + filters.limit - 1)


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class RestaurantStore(DomainStore[RestaurantFilters, RestaurantPage]):
    name = "restaurants"

    def __init__(
        self,
        gateway: Gateway,
        *,
        policy: StorePolicy = RESTAURANTS,
        clock: Clock = monotonic,
    ) -> None:
        super().__init__(gateway, policy=policy, clock=clock)

    def _cache_key(self, key: RestaurantFilters) -> str:
        return key.cache_key()

    def _empty(self, key: RestaurantFilters) -> RestaurantPage:
        return RestaurantPage()

    async def _fetch(self, key: RestaurantFilters) -> Result[RestaurantPage, StoreError]:
        logger.info("Fetching restaurants %s", key.cache_key())
        result = await self._gateway.select(list_query(key))
        match result:
            case Error(e):
                return Error(from_gateway(e))
            case Ok(rows):
                origin = key.origin
                restaurants = [Restaurant.from_row(row, origin) for row in rows.data]
                if key.radius and origin is not None:
                    restaurants = [
                        r for r in restaurants
                        if r.distance is not None and r.distance <= key.radius
                    ]
                return Ok(RestaurantPage(
                    restaurants=restaurants,
                    pagination=Pagination.of(key.page, key.limit, rows.count or 0),
                ))

    # ── reads ───────────────────────────────────────────────────────────────

    async def fetch_page(
        self, filters: RestaurantFilters | None = None
    ) -> RestaurantPage:
        return await self._load(filters or RestaurantFilters())

    async def fetch_restaurants(
        self, filters: RestaurantFilters | None = None
    ) -> list[Restaurant]:
        page = await self.fetch_page(filters)
        return page.restaurants

    def get_restaurant_by_id(self, restaurant_id: str) -> Restaurant | None:
        """Look through fresh cached lists. Never fetches."""
        for page in self._cache.values(fresh=True):
            for restaurant in page.restaurants:
                if restaurant.id == restaurant_id:
                    return restaurant
        return None

    async def search_restaurants(
        self, query: str, limit: int = DEFAULT_PAGE_SIZE
    ) -> Result[list[Restaurant], StoreError]:
        """Name search, not cached."""
        term = query.strip()
        if len(term) < MIN_SEARCH_LENGTH:
            return Error(StoreErrors.validation(
                "Search query must be at least 2 characters long"
            ))
        if self.is_rate_limited:
            return Error(StoreErrors.rate_limited())

        select = (
            Query("restaurants")
            .eq("is_active", True)
            .is_null("deleted_at")
            .ilike("name", f"%{term}%")
            .first(limit)
        )
        result = await L.guarded(
            lambda: self._gateway.select(select), on_error=exception_error
        )
        match result:
            case Ok(rows):
                return Ok([Restaurant.from_row(row) for row in rows.data])
            case Error(e):
                error = from_gateway(e)
                if error.kind is StoreErrorKind.RATE_LIMITED:
                    self._gate.trip(self._clock())
                logger.warning("Restaurant search failed: %s", error.message)
                return Error(error)


__all__ = (
    "RestaurantFilters",
    "Restaurant",
    "Pagination",
    "RestaurantPage",
    "RestaurantStore",
    "list_query",
    "SORT_FIELDS",
)
