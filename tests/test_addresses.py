"""Tests for nearby address search."""

from __future__ import annotations

import pytest

from menuteca.gateway import GatewayError
from menuteca.geo import Coordinates, haversine_km
from menuteca.localize import Language
from menuteca.stores import ADDRESSES, AddressStore, StoreErrorKind, UserStore
from menuteca.stores.addresses import NEARBY_RPC

from .conftest import BARCELONA

TOO_MANY = GatewayError("429", "Too many requests", 429)


def nearby_rpc(gw, args):
    """Server-side version of the radius search, backed by the seeded table."""
    center = Coordinates(args["center_lat"], args["center_lng"])
    rows = []
    for row in gw.rows("addresses"):
        point = Coordinates(row["coordinates"]["latitude"], row["coordinates"]["longitude"])
        distance = haversine_km(center, point)
        if distance <= args["radius_km"]:
            rows.append({**row, "distance_km": distance})
    rows.sort(key=lambda r: r["distance_km"])
    return rows[: args["max_results"]]


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("args", "message"),
        [
            ((91, 2.0), "Invalid latitude (must be between -90 and 90)"),
            ((41.0, -181), "Invalid longitude (must be between -180 and 180)"),
            ((41.0, 2.0, 0.05), "Invalid radius (must be between 0.1 and 100 km)"),
            ((41.0, 2.0, 10, 51), "Invalid limit (must be between 1 and 50)"),
        ],
    )
    async def test_out_of_range(self, services, gateway, args, message):
        result = await services.addresses.find_nearby(*args)

        error = result.unwrap_err()
        assert error.kind is StoreErrorKind.VALIDATION
        assert error.message == message
        assert gateway.log.count("rpc") == 0


class TestFindNearby:
    @pytest.mark.asyncio
    async def test_uses_remote_function(self, services, gateway):
        gateway.register_rpc(NEARBY_RPC, nearby_rpc)

        addresses = (await services.addresses.find_nearby(*BARCELONA, radius_km=5)).unwrap()

        assert [a.id for a in addresses] == ["a2", "a1"]
        assert addresses[1].street == "Calle de Mallorca"
        assert addresses[1].city == "Barcelona"
        assert gateway.log.count("select", "addresses") == 0

    @pytest.mark.asyncio
    async def test_falls_back_to_client_side_filter(self, services, gateway):
        addresses = (await services.addresses.find_nearby(*BARCELONA, radius_km=5)).unwrap()

        assert [a.id for a in addresses] == ["a2", "a1"]
        assert addresses[0].distance < addresses[1].distance
        assert gateway.log.count("rpc", NEARBY_RPC) == 1
        assert gateway.log.count("select", "addresses") == 1

    @pytest.mark.asyncio
    async def test_fallback_respects_limit_after_sorting(self, services):
        addresses = (await services.addresses.find_nearby(*BARCELONA, radius_km=100, limit=1)).unwrap()

        assert [a.id for a in addresses] == ["a2"]

    @pytest.mark.asyncio
    async def test_results_are_cached_per_query(self, services, gateway):
        gateway.register_rpc(NEARBY_RPC, nearby_rpc)

        await services.addresses.find_nearby(*BARCELONA)
        await services.addresses.find_nearby(*BARCELONA)
        await services.addresses.find_nearby(*BARCELONA, radius_km=50)

        assert gateway.log.count("rpc", NEARBY_RPC) == 2

    @pytest.mark.asyncio
    async def test_localized_to_user_language(self, services, gateway):
        gateway.register_rpc(NEARBY_RPC, nearby_rpc)
        await services.users.set_language(Language.CA_ES)

        addresses = (await services.addresses.find_nearby(*BARCELONA)).unwrap()

        mallorca = next(a for a in addresses if a.id == "a1")
        assert mallorca.street == "Carrer de Mallorca"
        assert mallorca.city == "Barcelona"

    @pytest.mark.asyncio
    async def test_falls_back_once_remote_function_is_removed(self, services, gateway, clock):
        gateway.register_rpc(NEARBY_RPC, nearby_rpc)
        await services.addresses.find_nearby(*BARCELONA, radius_km=5)
        gateway.unregister_rpc(NEARBY_RPC)
        clock.advance(services.addresses.policy.ttl.total_seconds())

        addresses = (await services.addresses.find_nearby(*BARCELONA, radius_km=5)).unwrap()

        assert [a.id for a in addresses] == ["a2", "a1"]
        assert gateway.log.count("rpc", NEARBY_RPC) == 2
        assert gateway.log.count("select", "addresses") == 1


class TestRateLimit:
    @pytest.mark.asyncio
    async def test_throttled_remote_function_does_not_fall_back(self, services, gateway):
        gateway.register_rpc(NEARBY_RPC, nearby_rpc)
        gateway.fail_next("rpc", NEARBY_RPC, TOO_MANY)

        result = await services.addresses.find_nearby(*BARCELONA)

        assert result.unwrap() == []
        assert services.addresses.state.error.kind is StoreErrorKind.RATE_LIMITED
        assert services.addresses.is_rate_limited
        assert gateway.log.count("select", "addresses") == 0

        blocked = await services.addresses.find_nearby(*BARCELONA, radius_km=20)
        assert blocked.unwrap() == []
        assert gateway.log.count("rpc", NEARBY_RPC) == 1

    @pytest.mark.asyncio
    async def test_fresh_query_is_served_while_throttled(self, services, gateway, clock):
        gateway.register_rpc(NEARBY_RPC, nearby_rpc)
        cached = (await services.addresses.find_nearby(*BARCELONA)).unwrap()
        gateway.fail_next("rpc", NEARBY_RPC, TOO_MANY)
        await services.addresses.find_nearby(*BARCELONA, radius_km=20)
        assert services.addresses.is_rate_limited

        clock.advance(1)
        again = await services.addresses.find_nearby(*BARCELONA)

        assert again.unwrap() == cached
        assert gateway.log.count("rpc", NEARBY_RPC) == 2

    @pytest.mark.asyncio
    async def test_stale_query_returns_last_known_while_throttled(self, gateway, clock):
        policy = ADDRESSES.with_ttl(seconds=30)
        store = AddressStore(gateway, UserStore(gateway), policy=policy, clock=clock)
        gateway.register_rpc(NEARBY_RPC, nearby_rpc)
        first = (await store.find_nearby(*BARCELONA)).unwrap()
        clock.advance(30)
        gateway.fail_next("rpc", NEARBY_RPC, TOO_MANY)

        stale = await store.find_nearby(*BARCELONA)
        blocked = await store.find_nearby(*BARCELONA)

        assert stale.unwrap() == first
        assert blocked.unwrap() == first
        assert gateway.log.count("rpc", NEARBY_RPC) == 2
