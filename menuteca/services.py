"""
Services — one set of stores per session, sharing a gateway and a clock.

    services = build_services(MemoryGateway(), clock=fake_clock)

    async with from_settings() as services:
        menus = await services.menus.fetch_restaurant_menus(restaurant_id)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from menuteca._types import Clock, monotonic
from menuteca.config import Settings, get_settings
from menuteca.gateway import Gateway, RestGateway
from menuteca.localize import Language
from menuteca.stores import (
    AddressStore,
    CuisineStore,
    MenuStore,
    RestaurantStore,
    UserStore,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Services:
    gateway: Gateway
    users: UserStore
    restaurants: RestaurantStore
    menus: MenuStore
    cuisines: CuisineStore
    addresses: AddressStore

    def clear_all(self) -> None:
        """Pull-to-refresh: drop every cached slice, keep the session."""
        for store in (self.restaurants, self.menus, self.cuisines, self.addresses):
            store.clear_cache()


def build_services(
    gateway: Gateway,
    settings: Settings | None = None,
    clock: Clock | None = None,
) -> Services:
    settings = settings or get_settings()
    clock = clock or monotonic

    users = UserStore(gateway, default_language=settings.default_language)
    restaurants = RestaurantStore(
        gateway, policy=settings.policy_for("restaurants"), clock=clock
    )
    menus = MenuStore(gateway, users, policy=settings.policy_for("menus"), clock=clock)
    cuisines = CuisineStore(
        gateway, users, policy=settings.policy_for("cuisines"), clock=clock
    )
    addresses = AddressStore(
        gateway, users, policy=settings.policy_for("addresses"), clock=clock
    )

    for store in (restaurants, menus, cuisines, addresses):
        users.register(store)

    # Menus and addresses are localized at fetch time; drop them and
    # re-read the cuisine catalogue in the new language.
    async def on_language_change(language: Language) -> None:
        menus.clear_cache()
        addresses.clear_cache()
        await cuisines.refresh_cuisines(language)

    users.on_language_change(on_language_change)

    return Services(
        gateway=gateway,
        users=users,
        restaurants=restaurants,
        menus=menus,
        cuisines=cuisines,
        addresses=addresses,
    )


@asynccontextmanager
async def from_settings(
    settings: Settings | None = None,
    *,
    access_token: str | None = None,
    clock: Clock | None = None,
) -> AsyncIterator[Services]:
    """Services over a RestGateway; the HTTP client closes on exit."""
    settings = settings or get_settings()
    async with httpx.AsyncClient(timeout=settings.request_timeout_seconds) as client:
        gateway = RestGateway(
            client,
            base_url=settings.gateway_url,
            api_key=settings.gateway_api_key,
            access_token=access_token,
        )
        logger.info("Gateway %s", settings.gateway_url)
        yield build_services(gateway, settings, clock)


__all__ = ("Services", "build_services", "from_settings")
