"""Tests for MenuStore reads and the owner write path."""

from __future__ import annotations

import pytest

from menuteca.localize import Language
from menuteca.stores import (
    DishDraft,
    MenuDraft,
    StoreErrorKind,
    User,
)
from menuteca.stores.menus import NOT_RELOADED_MESSAGE

from .conftest import OTHER_USER, OWNER


def lunch(**overrides) -> MenuDraft:
    fields = dict(
        name="Menú de mediodía",
        days=("wednesday", "thursday"),
        start_time="13:00",
        end_time="16:00",
        price=16.0,
        dishes=(
            DishDraft("Ensalada de temporada", category="firstCourses", is_vegan=True),
            DishDraft("Arroz negro", "Con alioli", category="secondCourses", extra_price=2.5),
        ),
    )
    fields.update(overrides)
    return MenuDraft(**fields)


async def fresh_menus(store, restaurant_id: str):
    """What a cold read of the gateway returns right now."""
    store.remove_from_cache(restaurant_id)
    return await store.fetch_restaurant_menus(restaurant_id)


def remote_state(gateway) -> tuple[list, list]:
    return gateway.rows("menus"), gateway.rows("dishes")


class TestRead:
    @pytest.mark.asyncio
    async def test_menus_with_dishes_localized(self, services):
        menus = await services.menus.fetch_restaurant_menus("r01")

        assert len(menus) == 1
        menu = menus[0]
        assert menu.name == "Menú del día"
        assert menu.days == ("monday", "tuesday")
        assert menu.drinks.wine is True
        assert menu.includes_coffee_and_dessert == "coffee"
        assert [d.name for d in menu.dishes] == ["Gazpacho", "Lubina a la sal"]
        assert menu.dishes[0].description == "Con picatostes"
        assert menu.dishes[1].extra_price == 3.5

    @pytest.mark.asyncio
    async def test_language_and_fallback(self, services):
        await services.users.set_language(Language.EN_US)
        menus = await services.menus.fetch_restaurant_menus("r01")

        assert menus[0].name == "Daily menu"
        assert menus[0].dishes[0].name == "Cold tomato soup"
        # No English translation: falls back to Spanish.
        assert menus[0].dishes[1].name == "Lubina a la sal"

    @pytest.mark.asyncio
    async def test_restaurant_without_menus(self, services, gateway):
        menus = await services.menus.fetch_restaurant_menus("r02")

        assert menus == []
        assert gateway.log.count("select", "dishes") == 0

    @pytest.mark.asyncio
    async def test_peek_is_fresh_only(self, services, clock):
        store = services.menus
        assert store.get_menus_by_restaurant_id("r01") is None

        await store.fetch_restaurant_menus("r01")
        assert len(store.get_menus_by_restaurant_id("r01")) == 1

        clock.advance(store.policy.ttl.total_seconds())
        assert store.get_menus_by_restaurant_id("r01") is None

    @pytest.mark.asyncio
    async def test_menus_cached_for_ten_minutes(self, services, gateway, clock):
        await services.menus.fetch_restaurant_menus("r01")
        clock.advance(599)
        await services.menus.fetch_restaurant_menus("r01")
        assert gateway.log.count("select", "menus") == 1

        clock.advance(2)
        await services.menus.fetch_restaurant_menus("r01")
        assert gateway.log.count("select", "menus") == 2


class TestCachePatches:
    @pytest.mark.asyncio
    async def test_patch_helpers(self, services):
        store = services.menus
        menu = (await store.fetch_restaurant_menus("r01"))[0]

        assert store.remove_menu_from_cache("r01", menu.id) is True
        assert store.get_menus_by_restaurant_id("r01") == []
        assert store.add_menu_to_cache("r01", menu) is True
        assert store.get_menus_by_restaurant_id("r01") == [menu]

    def test_patch_without_cached_list(self, services):
        assert services.menus.add_menu_to_cache("r01", object()) is False
        assert services.menus.get_menus_by_restaurant_id("r01") is None


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_patches_cache_like_a_fresh_fetch(self, services, gateway):
        gateway.sign_in(OWNER)
        store = services.menus
        await store.fetch_restaurant_menus("r01")

        result = await store.create_menu_with_dishes("r01", lunch())

        menu = result.unwrap()
        assert menu.name == "Menú de mediodía"
        assert [d.name for d in menu.dishes] == ["Ensalada de temporada", "Arroz negro"]
        patched = store.get_menus_by_restaurant_id("r01")
        assert [m.id for m in patched] == ["m1", menu.id]
        assert patched == await fresh_menus(store, "r01")

    @pytest.mark.asyncio
    async def test_rows_written_in_user_language(self, services, gateway):
        gateway.sign_in(OWNER)
        await services.users.set_language(Language.CA_ES)

        menu = (await services.menus.create_menu_with_dishes("r01", lunch(name="Menú del migdia"))).unwrap()

        row = next(r for r in gateway.rows("menus") if r["id"] == menu.id)
        assert row["name"] == {"ca_ES": "Menú del migdia"}
        assert row["restaurant_id"] == "r01"
        assert row["is_active"] is True
        dishes = [r for r in gateway.rows("dishes") if r["menu_id"] == menu.id]
        assert len(dishes) == 2

    @pytest.mark.asyncio
    async def test_dish_insert_failure_deletes_menu_row(self, services, gateway):
        gateway.sign_in(OWNER)
        store = services.menus
        before = await store.fetch_restaurant_menus("r01")
        gateway.fail_next("insert", "dishes")

        result = await store.create_menu_with_dishes("r01", lunch())

        error = result.unwrap_err()
        assert error.kind is StoreErrorKind.GATEWAY
        assert error.message == "injected insert failure"
        assert [r["id"] for r in gateway.rows("menus")] == ["m1"]
        assert gateway.log.count("delete", "menus") == 1
        assert store.get_menus_by_restaurant_id("r01") == before

    @pytest.mark.asyncio
    async def test_failed_compensation_is_still_reported(self, services, gateway):
        gateway.sign_in(OWNER)
        gateway.fail_next("insert", "dishes")
        gateway.fail_next("delete", "menus")

        result = await services.menus.create_menu_with_dishes("r01", lunch())

        assert result.unwrap_err().message == "injected insert failure"
        # The orphan menu row could not be removed.
        assert len(gateway.rows("menus")) == 2

    @pytest.mark.asyncio
    async def test_menu_without_dishes(self, services, gateway):
        gateway.sign_in(OWNER)

        menu = (await services.menus.create_menu_with_dishes("r01", lunch(dishes=()))).unwrap()

        assert menu.dishes == ()
        assert gateway.log.count("insert", "dishes") == 0

    @pytest.mark.asyncio
    async def test_requires_signed_in_user(self, services, gateway):
        result = await services.menus.create_menu_with_dishes("r01", lunch())

        error = result.unwrap_err()
        assert error.kind is StoreErrorKind.NOT_AUTHENTICATED
        assert error.message == "User not authenticated"
        assert gateway.log.count("insert") == 0

    @pytest.mark.asyncio
    async def test_other_users_restaurant_is_rejected(self, services, gateway):
        gateway.sign_in(OTHER_USER)
        cached = await services.menus.fetch_restaurant_menus("r01")
        before = remote_state(gateway)

        result = await services.menus.create_menu_with_dishes("r01", lunch())

        error = result.unwrap_err()
        assert error.kind is StoreErrorKind.NOT_AUTHORIZED
        assert error.message == "Not authorized to create menus for this restaurant"
        assert gateway.log.count("insert") == 0
        assert remote_state(gateway) == before
        assert services.menus.get_menus_by_restaurant_id("r01") == cached

    @pytest.mark.asyncio
    async def test_local_user_state_is_not_trusted(self, services, gateway):
        services.users.set_user(User(id=OWNER))
        gateway.sign_in(OTHER_USER)

        result = await services.menus.create_menu_with_dishes("r01", lunch())

        assert result.unwrap_err().kind is StoreErrorKind.NOT_AUTHORIZED

    @pytest.mark.asyncio
    async def test_unknown_restaurant(self, services, gateway):
        gateway.sign_in(OWNER)

        result = await services.menus.create_menu_with_dishes("r-missing", lunch())

        error = result.unwrap_err()
        assert error.kind is StoreErrorKind.NOT_FOUND
        assert error.message == "Restaurant not found"

    @pytest.mark.asyncio
    async def test_failed_reread_reports_saved_write(self, services, gateway):
        gateway.sign_in(OWNER)
        store = services.menus
        await store.fetch_restaurant_menus("r01")
        gateway.fail_next("select", "menus")

        result = await store.create_menu_with_dishes("r01", lunch())

        error = result.unwrap_err()
        assert error.kind is StoreErrorKind.GATEWAY
        assert error.message.startswith(NOT_RELOADED_MESSAGE)
        assert len(gateway.rows("menus")) == 2
        assert store.get_menus_by_restaurant_id("r01") is None
        assert len(await store.fetch_restaurant_menus("r01")) == 2


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("overrides", "message"),
        [
            ({"name": "  "}, "Menu name is required"),
            ({"price": -1}, "Menu price must not be negative"),
            ({"days": ()}, "Menu must be available at least one day"),
            ({"days": ("someday",)}, "Unknown day: someday"),
            ({"start_time": "1pm"}, "Invalid time format, expected HH:MM"),
            ({"start_time": "16:00", "end_time": "13:00"}, "Menu start time must be before end time"),
            ({"dishes": (DishDraft(""),)}, "Dish name is required"),
            ({"dishes": (DishDraft("Flan", category="cakes"),)}, "Unknown dish category: cakes"),
        ],
    )
    async def test_invalid_draft(self, services, gateway, overrides, message):
        gateway.sign_in(OWNER)

        result = await services.menus.create_menu_with_dishes("r01", lunch(**overrides))

        error = result.unwrap_err()
        assert error.kind is StoreErrorKind.VALIDATION
        assert error.message == message
        assert gateway.log.count("auth") == 0

    def test_seconds_are_accepted(self):
        assert lunch(start_time="13:00:00", end_time="16:30:00").problem() is None


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_merges_translations_and_replaces_dishes(self, services, gateway):
        gateway.sign_in(OWNER)
        store = services.menus
        await store.fetch_restaurant_menus("r01")
        draft = lunch(dishes=(DishDraft("Salmorejo", category="firstCourses", id="d1"),))

        menu = (await store.update_menu_with_dishes("r01", "m1", draft)).unwrap()

        row = next(r for r in gateway.rows("menus") if r["id"] == "m1")
        assert row["name"] == {"es_ES": "Menú de mediodía", "en_US": "Daily menu"}
        assert row["price"] == 16.0
        assert "updated_at" in row

        dishes = [r for r in gateway.rows("dishes") if r["menu_id"] == "m1"]
        assert [d["id"] for d in dishes] == ["d1"]
        assert dishes[0]["name"] == {"es_ES": "Salmorejo", "en_US": "Cold tomato soup"}

        assert menu.name == "Menú de mediodía"
        assert store.get_menus_by_restaurant_id("r01") == [menu]
        assert store.get_menus_by_restaurant_id("r01") == await fresh_menus(store, "r01")

    @pytest.mark.asyncio
    async def test_failed_dish_replace_restores_previous_state(self, services, gateway):
        gateway.sign_in(OWNER)
        store = services.menus
        before = await store.fetch_restaurant_menus("r01")
        gateway.fail_next("insert", "dishes")

        result = await store.update_menu_with_dishes("r01", "m1", lunch())

        assert result.unwrap_err().kind is StoreErrorKind.GATEWAY
        row = next(r for r in gateway.rows("menus") if r["id"] == "m1")
        assert row["name"] == {"es_ES": "Menú del día", "en_US": "Daily menu"}
        assert row["price"] == 14.5
        dishes = [r for r in gateway.rows("dishes") if r["menu_id"] == "m1"]
        assert sorted(d["id"] for d in dishes) == ["d1", "d2"]
        assert store.get_menus_by_restaurant_id("r01") == before

    @pytest.mark.asyncio
    async def test_menu_of_another_restaurant_is_not_found(self, services, gateway):
        gateway.sign_in(OWNER)

        result = await services.menus.update_menu_with_dishes("r02", "m1", lunch())

        error = result.unwrap_err()
        assert error.kind is StoreErrorKind.NOT_FOUND
        assert error.message == "Menu not found"

    @pytest.mark.asyncio
    async def test_non_owner_cannot_update(self, services, gateway):
        gateway.sign_in(OTHER_USER)
        cached = await services.menus.fetch_restaurant_menus("r01")
        before = remote_state(gateway)

        result = await services.menus.update_menu_with_dishes("r01", "m1", lunch())

        error = result.unwrap_err()
        assert error.kind is StoreErrorKind.NOT_AUTHORIZED
        assert error.message == "Not authorized to update this menu"
        assert gateway.log.count("update") == 0
        assert remote_state(gateway) == before
        assert services.menus.get_menus_by_restaurant_id("r01") == cached


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_rows_and_cached_menu(self, services, gateway):
        gateway.sign_in(OWNER)
        store = services.menus
        await store.fetch_restaurant_menus("r01")

        result = await store.delete_menu("r01", "m1")

        assert result.unwrap() == "m1"
        assert gateway.rows("menus") == []
        assert gateway.rows("dishes") == []
        assert store.get_menus_by_restaurant_id("r01") == []

    @pytest.mark.asyncio
    async def test_failed_menu_delete_restores_dishes(self, services, gateway):
        gateway.sign_in(OWNER)
        store = services.menus
        before = await store.fetch_restaurant_menus("r01")
        gateway.fail_next("delete", "menus")

        result = await store.delete_menu("r01", "m1")

        assert result.unwrap_err().kind is StoreErrorKind.GATEWAY
        assert sorted(d["id"] for d in gateway.rows("dishes")) == ["d1", "d2"]
        assert store.get_menus_by_restaurant_id("r01") == before

    @pytest.mark.asyncio
    async def test_unknown_menu(self, services, gateway):
        gateway.sign_in(OWNER)

        result = await services.menus.delete_menu("r01", "m-missing")

        assert result.unwrap_err().message == "Menu not found"

    @pytest.mark.asyncio
    async def test_non_owner_cannot_delete(self, services, gateway):
        gateway.sign_in(OTHER_USER)
        cached = await services.menus.fetch_restaurant_menus("r01")
        before = remote_state(gateway)

        result = await services.menus.delete_menu("r01", "m1")

        assert result.unwrap_err().message == "Not authorized to delete this menu"
        assert result.unwrap_err().kind is StoreErrorKind.NOT_AUTHORIZED
        assert remote_state(gateway) == before
        assert services.menus.get_menus_by_restaurant_id("r01") == cached
