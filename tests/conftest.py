"""Shared fixtures: a controllable clock, a seeded in-memory backend and wired stores."""

from __future__ import annotations

import pytest

from menuteca.config import Settings
from menuteca.gateway import MemoryGateway
from menuteca.services import Services, build_services

OWNER = "u-owner"
OTHER_USER = "u-other"

BARCELONA = (41.3874, 2.1686)
MADRID = (40.4168, -3.7038)


class FakeClock:
    """Monotonic seconds that only move when a test says so."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def restaurant_rows() -> list[dict]:
    rows = []
    for i in range(1, 26):
        lat, lng = MADRID if i == 25 else (BARCELONA[0] + i * 0.001, BARCELONA[1])
        rows.append({
            "id": f"r{i:02d}",
            "name": f"Restaurante {i:02d}",
            "is_active": True,
            "owner_id": OWNER if i == 1 else OTHER_USER,
            "minimum_price": 10 + i,
            "rating": 3 + (i % 3),
            "cuisine_id": "c1" if i % 2 else "c2",
            "tags": ["mediterranean"] if i % 2 else ["vegan"],
            "coordinates": {"latitude": lat, "longitude": lng},
        })
    rows.append({
        "id": "r-closed",
        "name": "Restaurante Cerrado",
        "is_active": False,
        "owner_id": OTHER_USER,
    })
    return rows


def menu_rows() -> list[dict]:
    return [{
        "id": "m1",
        "restaurant_id": "r01",
        "name": {"es_ES": "Menú del día", "en_US": "Daily menu"},
        "days": ["monday", "tuesday"],
        "start_time": "13:00",
        "end_time": "16:00",
        "price": 14.5,
        "is_active": True,
        "includes_bread": True,
        "drinks": {"water": True, "wine": True},
        "includes_coffee_and_dessert": "coffee",
    }]


def dish_rows() -> list[dict]:
    return [
        {
            "id": "d1",
            "menu_id": "m1",
            "name": {"es_ES": "Gazpacho", "en_US": "Cold tomato soup"},
            "description": {"es_ES": "Con picatostes"},
            "category": "firstCourses",
            "is_vegan": True,
        },
        {
            "id": "d2",
            "menu_id": "m1",
            "name": {"es_ES": "Lubina a la sal"},
            "description": {},
            "category": "secondCourses",
            "extra_price": 3.5,
        },
    ]


def cuisine_rows() -> list[dict]:
    return [
        {"id": "c1", "name": {"es_ES": "Mediterránea", "en_US": "Mediterranean"}},
        {"id": "c2", "name": {"es_ES": "Japonesa", "en_US": "Japanese"}},
        {"id": "c3", "name": {"es_ES": "Vegetariana", "ca_ES": "Vegetariana"}},
    ]


def address_rows() -> list[dict]:
    return [
        {
            "id": "a1",
            "street": {"es_ES": "Calle de Mallorca", "ca_ES": "Carrer de Mallorca"},
            "number": "401",
            "city": {"es_ES": "Barcelona"},
            "country": {"es_ES": "España"},
            "coordinates": {"latitude": 41.4036, "longitude": 2.1744},
        },
        {
            "id": "a2",
            "street": {"es_ES": "Plaça de Catalunya"},
            "city": {"es_ES": "Barcelona"},
            "country": {"es_ES": "España"},
            "coordinates": {"latitude": 41.3870, "longitude": 2.1700},
        },
        {
            "id": "a3",
            "street": {"es_ES": "Gran Vía"},
            "city": {"es_ES": "Madrid"},
            "country": {"es_ES": "España"},
            "coordinates": {"latitude": 40.4200, "longitude": -3.7050},
        },
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> MemoryGateway:
    gw = MemoryGateway()
    gw.seed("restaurants", restaurant_rows())
    gw.seed("menus", menu_rows())
    gw.seed("dishes", dish_rows())
    gw.seed("cuisines", cuisine_rows())
    gw.seed("addresses", address_rows())
    gw.references("menus", "restaurant_id", "restaurants")
    gw.references("dishes", "menu_id", "menus")
    return gw


@pytest.fixture
def settings() -> Settings:
    return Settings(gateway_api_key="test-key")


@pytest.fixture
def services(gateway: MemoryGateway, settings: Settings, clock: FakeClock) -> Services:
    return build_services(gateway, settings, clock)
