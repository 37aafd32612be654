"""Tests for the cuisine catalogue."""

from __future__ import annotations

import pytest

from menuteca.localize import Language


class TestCuisineStore:
    @pytest.mark.asyncio
    async def test_fetch_localized_and_cached_for_an_hour(self, services, gateway, clock):
        cuisines = await services.cuisines.fetch_cuisines()

        assert [c.name for c in cuisines] == ["Mediterránea", "Japonesa", "Vegetariana"]

        clock.advance(3599)
        await services.cuisines.fetch_cuisines()
        assert gateway.log.count("select", "cuisines") == 1

        clock.advance(1)
        await services.cuisines.fetch_cuisines()
        assert gateway.log.count("select", "cuisines") == 2

    @pytest.mark.asyncio
    async def test_refresh_ignores_freshness(self, services, gateway):
        await services.cuisines.fetch_cuisines()
        await services.cuisines.refresh_cuisines()

        assert gateway.log.count("select", "cuisines") == 2

    @pytest.mark.asyncio
    async def test_get_by_id(self, services):
        assert services.cuisines.get_cuisine_by_id("c2") is None

        await services.cuisines.fetch_cuisines()

        assert services.cuisines.get_cuisine_by_id("c2").name == "Japonesa"
        assert services.cuisines.get_cuisine_by_id("c9") is None

    @pytest.mark.asyncio
    async def test_language_change_refreshes_catalogue(self, services, gateway):
        await services.cuisines.fetch_cuisines()

        await services.users.set_language(Language.EN_US)

        assert gateway.log.count("select", "cuisines") == 2
        assert services.cuisines.get_cuisine_by_id("c1").name == "Mediterranean"
        # No English name: Spanish fallback.
        assert services.cuisines.get_cuisine_by_id("c3").name == "Vegetariana"

    @pytest.mark.asyncio
    async def test_same_language_does_not_refresh(self, services, gateway):
        await services.cuisines.fetch_cuisines()

        await services.users.set_language(Language.ES_ES)

        assert gateway.log.count("select", "cuisines") == 1

    @pytest.mark.asyncio
    async def test_clear_cuisines(self, services):
        await services.cuisines.fetch_cuisines()

        services.cuisines.clear_cuisines()

        assert services.cuisines.get_cuisine_by_id("c1") is None


class TestSearch:
    @pytest.mark.asyncio
    async def test_remote_search_matches_localized_name(self, services):
        found = await services.cuisines.search_cuisines("  JAPON ")

        assert [c.id for c in found] == ["c2"]

    @pytest.mark.asyncio
    async def test_limit(self, services):
        found = await services.cuisines.search_cuisines("a", limit=2)

        assert [c.id for c in found] == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_falls_back_to_cached_list(self, services, gateway):
        await services.cuisines.fetch_cuisines()
        gateway.fail_next("select", "cuisines")

        found = await services.cuisines.search_cuisines("medit")

        assert [c.id for c in found] == ["c1"]
        assert services.cuisines.state.error is None

    @pytest.mark.asyncio
    async def test_failure_without_cache_is_empty(self, services, gateway):
        gateway.fail_next("select", "cuisines")

        assert await services.cuisines.search_cuisines("medit") == []
