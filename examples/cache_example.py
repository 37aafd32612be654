"""
Restaurant list freshness — TTL hits, coalesced reads and the rate-limit gate.

Level 5: menuteca.stores
Level 4: menuteca.cache
Level 2: kungfu.Result
"""

import asyncio

from menuteca.config import Settings, configure_logging
from menuteca.gateway import GatewayError
from menuteca.services import build_services
from menuteca.stores import RestaurantFilters
from examples._infra import ManualClock, banner, run, seeded_gateway


async def main() -> None:
    banner("Cache: restaurant list freshness")

    settings = Settings(log_level="WARNING")
    configure_logging(settings)

    gw = seeded_gateway()
    clock = ManualClock()
    services = build_services(gw, settings, clock)
    restaurants = services.restaurants
    filters = RestaurantFilters(page=1, limit=20, sort_by="rating")

    print("\n1. First read (miss → gateway):")
    page = await restaurants.fetch_page(filters)
    print(f"   {[r.name for r in page.restaurants]}")
    print(f"   gateway selects: {gw.log.count('select', 'restaurants')}")

    print("\n2. Same filters again (fresh hit, no call):")
    await restaurants.fetch_page(filters)
    print(f"   gateway selects: {gw.log.count('select', 'restaurants')}")

    print("\n3. Three screens ask at once after the TTL (one shared call):")
    clock.advance(restaurants.policy.ttl.total_seconds())
    await asyncio.gather(*(restaurants.fetch_page(filters) for _ in range(3)))
    print(f"   gateway selects: {gw.log.count('select', 'restaurants')}")

    print("\n4. Backend throttles us:")
    clock.advance(restaurants.policy.ttl.total_seconds())
    gw.fail_next("select", "restaurants", GatewayError("429", "Too many requests", 429))
    page = await restaurants.fetch_page(filters)
    state = restaurants.state
    print(f"   served {len(page.restaurants)} last-known rows")
    print(f"   rate_limited={state.rate_limited} error={state.error_message!r}")

    print("\n5. Cooldown elapses, reads resume:")
    clock.advance(restaurants.policy.rate_limit_cooldown.total_seconds())
    await restaurants.fetch_page(filters)
    print(f"   rate_limited={restaurants.state.rate_limited}")
    print(f"   gateway selects: {gw.log.count('select', 'restaurants')}")

    print("\nDone!")


if __name__ == "__main__":
    run(main)
