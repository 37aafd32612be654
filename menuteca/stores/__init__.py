"""
Stores — per-domain caches between screens and the remote gateway.

    from menuteca import stores as ST

    users = ST.UserStore(gateway)
    restaurants = ST.RestaurantStore(gateway)
    menus = ST.MenuStore(gateway, users)

    page = await restaurants.fetch_page(ST.RestaurantFilters(page=1, limit=20))
    if restaurants.state.rate_limited:
        ...
"""

from __future__ import annotations

from menuteca.stores._types import (
    StoreErrorKind,
    StoreError,
    StoreErrors,
    StoreState,
    from_gateway,
)
from menuteca.stores._policy import StorePolicy, RESTAURANTS, MENUS, CUISINES, ADDRESSES
from menuteca.stores._base import RateLimitGate, DomainStore, RATE_LIMITED_MESSAGE
from menuteca.stores.users import User, UserStore, Clearable
from menuteca.stores.restaurants import (
    RestaurantFilters,
    Restaurant,
    Pagination,
    RestaurantPage,
    RestaurantStore,
)
from menuteca.stores.menus import (
    Day,
    DishCategory,
    DrinkInclusion,
    Dish,
    Menu,
    DishDraft,
    MenuDraft,
    CompensationError,
    MenuStore,
)
from menuteca.stores.cuisines import Cuisine, CuisineStore
from menuteca.stores.addresses import NearbyQuery, Address, AddressStore

__all__ = (
    # Errors and state
    "StoreErrorKind",
    "StoreError",
    "StoreErrors",
    "StoreState",
    "from_gateway",
    # Policy
    "StorePolicy",
    "RESTAURANTS",
    "MENUS",
    "CUISINES",
    "ADDRESSES",
    # Base
    "RateLimitGate",
    "DomainStore",
    "RATE_LIMITED_MESSAGE",
    # Users
    "User",
    "UserStore",
    "Clearable",
    # Restaurants
    "RestaurantFilters",
    "Restaurant",
    "Pagination",
    "RestaurantPage",
    "RestaurantStore",
    # Menus
    "Day",
    "DishCategory",
    "DrinkInclusion",
    "Dish",
    "Menu",
    "DishDraft",
    "MenuDraft",
    "CompensationError",
    "MenuStore",
    # Cuisines
    "Cuisine",
    "CuisineStore",
    # Addresses
    "NearbyQuery",
    "Address",
    "AddressStore",
)
