"""
Menu store — per-restaurant menu lists and the owner write path.

Reads are cached per restaurant for ten minutes. Writes verify ownership
against the gateway, run as a compensated saga, re-read the composed menu
and patch the cached list in place instead of invalidating it:

    result = await menus.create_menu_with_dishes(restaurant_id, MenuDraft(
        name="Lunch",
        days=("monday", "tuesday"),
        start_time="13:00",
        end_time="16:00",
        price=14.5,
        dishes=(DishDraft("Gazpacho", category="firstCourses"),),
    ))

    match result:
        case Ok(menu):
            ...  # menus.get_menus_by_restaurant_id(restaurant_id) now holds it
        case Error(e) if e.kind is StoreErrorKind.NOT_AUTHORIZED:
            ...
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal

from kungfu import LazyCoroResult, Result, Ok, Error

from menuteca import lift as L
from menuteca import saga as S
from menuteca._types import Clock, monotonic
from menuteca.gateway import Gateway, GatewayError, Query, Row, eq
from menuteca.localize import Language, localized, merge_translation, translated
from menuteca.stores._base import DomainStore
from menuteca.stores._policy import MENUS, StorePolicy
from menuteca.stores._types import StoreError, StoreErrorKind, StoreErrors
from menuteca.stores.users import UserStore

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Vocabulary
# ═══════════════════════════════════════════════════════════════════════════════


class Day(StrEnum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class DishCategory(StrEnum):
    APPETIZERS = "appetizers"
    FIRST_COURSES = "firstCourses"
    SECOND_COURSES = "secondCourses"
    MAIN_COURSES = "mainCourses"
    SIDES = "sides"
    DESSERTS = "desserts"
    DRINKS = "drinks"


type CoffeeAndDessert = Literal["none", "coffee", "dessert", "both"]

COFFEE_AND_DESSERT = ("none", "coffee", "dessert", "both")

NOT_RELOADED_MESSAGE = "Saved, but could not reload the menu"

_TIME = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(:[0-5]\d)?$")


def _minutes(value: str) -> int | None:
    match = _TIME.match(value)
    if match is None:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


# ═══════════════════════════════════════════════════════════════════════════════
# Models
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class DrinkInclusion:
    water: bool = False
    wine: bool = False
    soft_drinks: bool = False
    beer: bool = False

    @classmethod
    def from_row(cls, value: dict[str, bool] | None) -> DrinkInclusion:
        value = value or {}
        return cls(
            water=bool(value.get("water", False)),
            wine=bool(value.get("wine", False)),
            soft_drinks=bool(value.get("soft_drinks", False)),
            beer=bool(value.get("beer", False)),
        )

    def to_row(self) -> dict[str, bool]:
        return {
            "water": self.water,
            "wine": self.wine,
            "soft_drinks": self.soft_drinks,
            "beer": self.beer,
        }


@dataclass(frozen=True, slots=True)
class Dish:
    id: str
    name: str
    description: str
    category: str
    extra_price: float = 0
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_gluten_free: bool = False
    is_lactose_free: bool = False
    is_spicy: bool = False

    @classmethod
    def from_row(cls, row: Row, language: Language) -> Dish:
        return cls(
            id=row["id"],
            name=localized(row.get("name"), language),
            description=localized(row.get("description"), language),
            category=row.get("category", ""),
            extra_price=row.get("extra_price") or 0,
            is_vegetarian=bool(row.get("is_vegetarian")),
            is_vegan=bool(row.get("is_vegan")),
            is_gluten_free=bool(row.get("is_gluten_free")),
            is_lactose_free=bool(row.get("is_lactose_free")),
            is_spicy=bool(row.get("is_spicy")),
        )


@dataclass(frozen=True, slots=True)
class Menu:
    id: str
    restaurant_id: str
    name: str
    days: tuple[str, ...]
    start_time: str
    end_time: str
    price: float
    dishes: tuple[Dish, ...] = ()
    first_courses_to_share: bool = False
    second_courses_to_share: bool = False
    desserts_to_share: bool = False
    includes_bread: bool = False
    drinks: DrinkInclusion = field(default_factory=DrinkInclusion)
    includes_coffee_and_dessert: str = "none"
    minimum_people: int | None = None
    has_minimum_people: bool = False

    @classmethod
    def from_row(cls, row: Row, dishes: list[Dish], language: Language) -> Menu:
        return cls(
            id=row["id"],
            restaurant_id=row["restaurant_id"],
            name=localized(row.get("name"), language),
            days=tuple(row.get("days") or ()),
            start_time=row.get("start_time", ""),
            end_time=row.get("end_time", ""),
            price=row.get("price") or 0,
            dishes=tuple(dishes),
            first_courses_to_share=bool(row.get("first_courses_to_share")),
            second_courses_to_share=bool(row.get("second_courses_to_share")),
            desserts_to_share=bool(row.get("desserts_to_share")),
            includes_bread=bool(row.get("includes_bread")),
            drinks=DrinkInclusion.from_row(row.get("drinks")),
            includes_coffee_and_dessert=row.get("includes_coffee_and_dessert") or "none",
            minimum_people=row.get("minimum_people"),
            has_minimum_people=bool(row.get("has_minimum_people")),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Drafts — Caller Input
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class DishDraft:
    """
    A dish as typed by the owner. id is set when editing an existing dish,
    so translations in other languages survive the edit.
    """

    name: str
    description: str = ""
    category: str = DishCategory.MAIN_COURSES
    extra_price: float = 0
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_gluten_free: bool = False
    is_lactose_free: bool = False
    is_spicy: bool = False
    id: str | None = None

    def problem(self) -> str | None:
        if not self.name.strip():
            return "Dish name is required"
        if self.extra_price < 0:
            return f"Dish extra price must not be negative: {self.name}"
        if self.category not in DishCategory:
            return f"Unknown dish category: {self.category}"
        return None

    def to_row(self, menu_id: str, language: Language, previous: Row | None = None) -> Row:
        if previous is not None:
            name = merge_translation(previous.get("name"), self.name, language)
            description = merge_translation(
                previous.get("description"), self.description, language
            )
        else:
            name = translated(self.name, language)
            description = translated(self.description, language)

        row: Row = {
            "menu_id": menu_id,
            "name": name,
            "description": description,
            "category": str(self.category),
            "extra_price": self.extra_price,
            "is_vegetarian": self.is_vegetarian,
            "is_vegan": self.is_vegan,
            "is_gluten_free": self.is_gluten_free,
            "is_lactose_free": self.is_lactose_free,
            "is_spicy": self.is_spicy,
        }
        if previous is not None:
            row["id"] = previous["id"]
        return row


@dataclass(frozen=True, slots=True)
class MenuDraft:
    name: str
    days: tuple[str, ...]
    start_time: str
    end_time: str
    price: float
    dishes: tuple[DishDraft, ...] = ()
    first_courses_to_share: bool = False
    second_courses_to_share: bool = False
    desserts_to_share: bool = False
    includes_bread: bool = False
    drinks: DrinkInclusion = field(default_factory=DrinkInclusion)
    includes_coffee_and_dessert: CoffeeAndDessert = "none"
    minimum_people: int | None = None
    has_minimum_people: bool = False

    def problem(self) -> str | None:
        if not self.name.strip():
            return "Menu name is required"
        if self.price < 0:
            return "Menu price must not be negative"
        if not self.days:
            return "Menu must be available at least one day"
        for day in self.days:
            if day not in Day:
                return f"Unknown day: {day}"

        start, end = _minutes(self.start_time), _minutes(self.end_time)
        if start is None or end is None:
            return "Invalid time format, expected HH:MM"
        if start >= end:
            return "Menu start time must be before end time"

        if self.includes_coffee_and_dessert not in COFFEE_AND_DESSERT:
            return f"Unknown coffee and dessert option: {self.includes_coffee_and_dessert}"
        if self.has_minimum_people and (self.minimum_people or 0) < 1:
            return "Minimum people must be at least 1"

        for dish in self.dishes:
            if (problem := dish.problem()) is not None:
                return problem
        return None

    def fields(self) -> Row:
        """Menu columns other than name and ownership."""
        return {
            "days": list(self.days),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "price": self.price,
            "first_courses_to_share": self.first_courses_to_share,
            "second_courses_to_share": self.second_courses_to_share,
            "desserts_to_share": self.desserts_to_share,
            "includes_bread": self.includes_bread,
            "drinks": self.drinks.to_row(),
            "includes_coffee_and_dessert": self.includes_coffee_and_dessert,
            "minimum_people": self.minimum_people,
            "has_minimum_people": self.has_minimum_people,
        }


def validate_draft(draft: MenuDraft) -> Result[MenuDraft, StoreError]:
    problem = draft.problem()
    if problem is not None:
        return Error(StoreErrors.validation(problem))
    return Ok(draft)


class CompensationError(Exception):
    """An undo step could not be applied remotely."""


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class MenuStore(DomainStore[str, list[Menu]]):
    """Menus keyed by restaurant id."""

    name = "menus"

    def __init__(
        self,
        gateway: Gateway,
        users: UserStore,
        *,
        policy: StorePolicy = MENUS,
        clock: Clock = monotonic,
    ) -> None:
        super().__init__(gateway, policy=policy, clock=clock)
        self._users = users

    def _cache_key(self, key: str) -> str:
        return f"menus:{key}"

    def _empty(self, key: str) -> list[Menu]:
        return []

    async def _fetch(self, key: str) -> Result[list[Menu], StoreError]:
        language = self._users.language
        logger.info("Fetching menus for restaurant %s", key)
        query = (
            Query("menus")
            .eq("restaurant_id", key)
            .eq("is_active", True)
            .is_null("deleted_at")
            .order_by("created_at")
        )
        match await self._call(lambda: self._gateway.select(query)):
            case Ok(rows):
                return await self._compose(rows.data, language)
            case Error(e):
                return Error(e)

    async def _compose(self, menu_rows: list[Row], language: Language) -> Result[list[Menu], StoreError]:
        """Attach dishes (one query for all menus) and localize."""
        if not menu_rows:
            return Ok([])

        ids = [row["id"] for row in menu_rows]
        query = Query("dishes").in_("menu_id", ids).order_by("created_at")
        match await self._call(lambda: self._gateway.select(query)):
            case Ok(rows):
                by_menu: dict[str, list[Dish]] = {}
                for row in rows.data:
                    by_menu.setdefault(row["menu_id"], []).append(Dish.from_row(row, language))
                return Ok([
                    Menu.from_row(row, by_menu.get(row["id"], []), language)
                    for row in menu_rows
                ])
            case Error(e):
                return Error(e)

    async def _fetch_menu(self, menu_id: str, language: Language) -> Result[Menu, StoreError]:
        query = Query("menus").eq("id", menu_id).is_null("deleted_at").single_row()
        match await self._call(lambda: self._gateway.select(query), not_found="Menu not found"):
            case Ok(rows):
                composed = await self._compose(rows.data, language)
                match composed:
                    case Ok(menus):
                        return Ok(menus[0])
                    case Error(e):
                        return Error(e)
            case Error(e):
                return Error(e)

    # ── reads ───────────────────────────────────────────────────────────────

    async def fetch_restaurant_menus(self, restaurant_id: str) -> list[Menu]:
        return await self._load(restaurant_id)

    def get_menus_by_restaurant_id(self, restaurant_id: str) -> list[Menu] | None:
        """Fresh cached menus or None. Never fetches."""
        return self._cache.peek(restaurant_id)

    # ── cache patches ───────────────────────────────────────────────────────

    def add_menu_to_cache(self, restaurant_id: str, menu: Menu) -> bool:
        return self._patch(restaurant_id, lambda menus: [*menus, menu])

    def update_menu_in_cache(self, restaurant_id: str, menu: Menu) -> bool:
        return self._patch(
            restaurant_id,
            lambda menus: [menu if m.id == menu.id else m for m in menus],
        )

    def remove_menu_from_cache(self, restaurant_id: str, menu_id: str) -> bool:
        return self._patch(
            restaurant_id,
            lambda menus: [m for m in menus if m.id != menu_id],
        )

    # ── ownership ───────────────────────────────────────────────────────────

    async def _verify_owner(self, restaurant_id: str, denied: str) -> Result[str, StoreError]:
        """Re-read the restaurant owner; never trust client-side state."""
        match await self._users.resolve_user_id():
            case Error(e):
                return Error(e)
            case Ok(user_id):
                pass

        query = (
            Query("restaurants", columns="id,owner_id")
            .eq("id", restaurant_id)
            .is_null("deleted_at")
            .single_row()
        )
        match await self._call(lambda: self._gateway.select(query)):
            case Error(e) if e.kind is StoreErrorKind.NOT_FOUND:
                return Error(StoreErrors.not_found("Restaurant not found"))
            case Error(e):
                logger.warning("Ownership check for %s failed: %s", restaurant_id, e)
                return Error(StoreErrors.gateway("Failed to verify restaurant"))
            case Ok(rows):
                if rows.data[0].get("owner_id") != user_id:
                    logger.warning(
                        "User %s denied on restaurant %s", user_id, restaurant_id
                    )
                    return Error(StoreErrors.not_authorized(denied))
                return Ok(user_id)

    async def _verify_menu(self, restaurant_id: str, menu_id: str, denied: str) -> Result[Row, StoreError]:
        """Ownership through menu → restaurant. Returns the current menu row."""
        query = Query("menus").eq("id", menu_id).is_null("deleted_at").single_row()
        match await self._call(lambda: self._gateway.select(query)):
            case Error(e) if e.kind is StoreErrorKind.NOT_FOUND:
                return Error(StoreErrors.not_found("Menu not found"))
            case Error(e):
                logger.warning("Menu check for %s failed: %s", menu_id, e)
                return Error(StoreErrors.gateway("Failed to verify menu"))
            case Ok(rows):
                row = rows.data[0]

        if row.get("restaurant_id") != restaurant_id:
            return Error(StoreErrors.not_found("Menu not found"))

        match await self._verify_owner(restaurant_id, denied):
            case Error(e):
                return Error(e)
            case Ok(_):
                return Ok(row)

    async def _dish_rows(self, menu_id: str) -> Result[list[Row], StoreError]:
        query = Query("dishes").eq("menu_id", menu_id).order_by("created_at")
        match await self._call(lambda: self._gateway.select(query)):
            case Ok(rows):
                return Ok(rows.data)
            case Error(e):
                return Error(e)

    # ── saga steps ──────────────────────────────────────────────────────────

    def _lazy[T](self, call: Callable[[], Awaitable[Result[T, GatewayError]]], **errors: str) -> LazyCoroResult[T, StoreError]:
        return LazyCoroResult(lambda: self._call(call, **errors))

    def _insert_menu(self, restaurant_id: str, draft: MenuDraft, language: Language) -> LazyCoroResult[Row, StoreError]:
        row = {
            "restaurant_id": restaurant_id,
            "name": translated(draft.name, language),
            **draft.fields(),
            "is_active": True,
        }

        async def insert() -> Result[Row, StoreError]:
            match await self._call(
                lambda: self._gateway.insert("menus", [row]),
                foreign_key="Invalid restaurant ID",
            ):
                case Ok(rows):
                    return Ok(rows[0])
                case Error(e):
                    return Error(e)

        return LazyCoroResult(insert)

    def _insert_dishes(self, menu_id: str, dishes: tuple[DishDraft, ...], language: Language) -> LazyCoroResult[list[Row], StoreError]:
        rows = [dish.to_row(menu_id, language) for dish in dishes]
        if not rows:
            return L.settled(Ok([]))
        return self._lazy(lambda: self._gateway.insert("dishes", rows))

    def _replace_dishes(
        self,
        menu_id: str,
        previous: list[Row],
        dishes: tuple[DishDraft, ...],
        language: Language,
    ) -> LazyCoroResult[list[Row], StoreError]:
        by_id = {row["id"]: row for row in previous}
        rows = [
            dish.to_row(menu_id, language, by_id.get(dish.id) if dish.id else None)
            for dish in dishes
        ]

        async def replace() -> Result[list[Row], StoreError]:
            match await self._call(lambda: self._gateway.delete("dishes", eq("menu_id", menu_id))):
                case Error(e):
                    return Error(e)
            if not rows:
                return Ok([])
            match await self._call(lambda: self._gateway.insert("dishes", rows)):
                case Ok(inserted):
                    return Ok(inserted)
                case Error(e):
                    # The delete already landed; put the old dishes back
                    # before the earlier steps are compensated.
                    try:
                        await self._restore_dishes(menu_id, previous)
                    except CompensationError:
                        logger.exception("Could not restore dishes of menu %s", menu_id)
                    return Error(e)

        return LazyCoroResult(replace)

    async def _delete_menu_row(self, menu_id: str) -> None:
        result = await self._call(lambda: self._gateway.delete("menus", eq("id", menu_id)))
        if isinstance(result, Error):
            raise CompensationError(f"delete menu {menu_id}: {result.error}")

    async def _delete_dish_rows(self, menu_id: str) -> None:
        result = await self._call(lambda: self._gateway.delete("dishes", eq("menu_id", menu_id)))
        if isinstance(result, Error):
            raise CompensationError(f"delete dishes of {menu_id}: {result.error}")

    async def _restore_menu_row(self, previous: Row) -> None:
        patch = {k: v for k, v in previous.items() if k not in ("id", "created_at")}
        result = await self._call(
            lambda: self._gateway.update("menus", patch, eq("id", previous["id"]))
        )
        if isinstance(result, Error):
            raise CompensationError(f"restore menu {previous['id']}: {result.error}")

    async def _restore_dishes(self, menu_id: str, previous: list[Row]) -> None:
        await self._delete_dish_rows(menu_id)
        if not previous:
            return
        result = await self._call(lambda: self._gateway.insert("dishes", previous))
        if isinstance(result, Error):
            raise CompensationError(f"restore dishes of {menu_id}: {result.error}")

    async def _finish(
        self,
        restaurant_id: str,
        menu_id: str,
        language: Language,
        patch: Callable[[str, Menu], bool],
    ) -> Result[Menu, StoreError]:
        """Re-read the composed menu and patch the cached list with it."""
        match await self._fetch_menu(menu_id, language):
            case Ok(menu):
                patch(restaurant_id, menu)
                return Ok(menu)
            case Error(e):
                # The write is committed; resubmitting would duplicate it.
                logger.warning("Re-read of menu %s failed: %s", menu_id, e)
                self.remove_from_cache(restaurant_id)
                return Error(StoreError(e.kind, f"{NOT_RELOADED_MESSAGE}: {e.message}"))

    # ── writes ──────────────────────────────────────────────────────────────

    async def create_menu_with_dishes(self, restaurant_id: str, draft: MenuDraft) -> Result[Menu, StoreError]:
        """
        Create a menu and its dishes.

        Steps: insert menu → insert dishes. When the dishes fail, the menu
        row is deleted again so no half-built menu is left behind.
        """
        match validate_draft(draft):
            case Error(e):
                return Error(e)

        match await self._verify_owner(
            restaurant_id, "Not authorized to create menus for this restaurant"
        ):
            case Error(e):
                return Error(e)

        language = self._users.language

        saga = S.step(
            self._insert_menu(restaurant_id, draft, language),
            compensate=lambda row: self._delete_menu_row(row["id"]),
            name="insert menu",
        ).then(lambda row: S.step(
            self._insert_dishes(row["id"], draft.dishes, language).map(lambda _: row["id"]),
            compensate=self._delete_dish_rows,
            name="insert dishes",
        ))

        match await S.run_chain(saga):
            case Error(failure):
                logger.warning(
                    "Create menu for %s failed at step %d (rollback complete: %s): %s",
                    restaurant_id,
                    failure.step_failed,
                    failure.rollback_complete,
                    failure.error,
                )
                return Error(failure.error)
            case Ok(done):
                menu_id = done.value

        logger.info("Menu %s created for restaurant %s", menu_id, restaurant_id)
        return await self._finish(restaurant_id, menu_id, language, self.add_menu_to_cache)

    async def update_menu_with_dishes(
        self,
        restaurant_id: str,
        menu_id: str,
        draft: MenuDraft,
    ) -> Result[Menu, StoreError]:
        """
        Update a menu and replace its dishes.

        The name is merged into the existing translations. If replacing the
        dishes fails, the previous menu row is written back.
        """
        match validate_draft(draft):
            case Error(e):
                return Error(e)

        match await self._verify_menu(restaurant_id, menu_id, "Not authorized to update this menu"):
            case Error(e):
                return Error(e)
            case Ok(previous):
                pass

        match await self._dish_rows(menu_id):
            case Error(e):
                return Error(e)
            case Ok(previous_dishes):
                pass

        language = self._users.language
        patch = {
            "name": merge_translation(previous.get("name"), draft.name, language),
            **draft.fields(),
            "updated_at": _now_iso(),
        }

        saga = S.step(
            self._lazy(lambda: self._gateway.update("menus", patch, eq("id", menu_id))),
            compensate=lambda _: self._restore_menu_row(previous),
            name="update menu",
        ).then(lambda _: S.step(
            self._replace_dishes(menu_id, previous_dishes, draft.dishes, language),
            compensate=lambda _: self._restore_dishes(menu_id, previous_dishes),
            name="replace dishes",
        ))

        match await S.run_chain(saga):
            case Error(failure):
                logger.warning(
                    "Update menu %s failed at step %d (rollback complete: %s): %s",
                    menu_id,
                    failure.step_failed,
                    failure.rollback_complete,
                    failure.error,
                )
                return Error(failure.error)

        logger.info("Menu %s updated", menu_id)
        return await self._finish(restaurant_id, menu_id, language, self.update_menu_in_cache)

    async def delete_menu(self, restaurant_id: str, menu_id: str) -> Result[str, StoreError]:
        """Delete dishes then the menu. Returns the deleted menu id."""
        match await self._verify_menu(restaurant_id, menu_id, "Not authorized to delete this menu"):
            case Error(e):
                return Error(e)

        match await self._dish_rows(menu_id):
            case Error(e):
                return Error(e)
            case Ok(previous_dishes):
                pass

        saga = S.step(
            self._lazy(lambda: self._gateway.delete("dishes", eq("menu_id", menu_id))),
            compensate=lambda _: self._restore_dishes(menu_id, previous_dishes),
            name="delete dishes",
        ).then(lambda _: S.step(
            self._lazy(lambda: self._gateway.delete("menus", eq("id", menu_id))),
            name="delete menu",
        ))

        match await S.run_chain(saga):
            case Error(failure):
                logger.warning("Delete menu %s failed: %s", menu_id, failure.error)
                return Error(failure.error)

        self.remove_menu_from_cache(restaurant_id, menu_id)
        logger.info("Menu %s deleted", menu_id)
        return Ok(menu_id)


__all__ = (
    "Day",
    "DishCategory",
    "DrinkInclusion",
    "Dish",
    "Menu",
    "DishDraft",
    "MenuDraft",
    "validate_draft",
    "CompensationError",
    "MenuStore",
    "NOT_RELOADED_MESSAGE",
)
