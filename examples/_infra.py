"""Shared infrastructure for examples."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine

from menuteca.gateway import MemoryGateway

OWNER = "u-marta"


# Manual clock
class ManualClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# Seeded backend
def seeded_gateway(*, latency: float = 0.01) -> MemoryGateway:
    gw = MemoryGateway(latency=latency)
    gw.seed("restaurants", [
        {
            "id": f"r{i}",
            "name": name,
            "is_active": True,
            "owner_id": OWNER if i == 1 else "u-other",
            "minimum_price": price,
            "rating": rating,
        }
        for i, (name, price, rating) in enumerate(
            [
                ("Can Pep", 18, 4.6),
                ("El Xampanyet", 12, 4.8),
                ("Bar Pinotxo", 15, 4.5),
                ("La Cova Fumada", 10, 4.7),
            ],
            start=1,
        )
    ])
    gw.seed("menus", [{
        "id": "m1",
        "restaurant_id": "r1",
        "name": {"es_ES": "Menú del día", "en_US": "Daily menu"},
        "days": ["monday", "tuesday", "wednesday"],
        "start_time": "13:00",
        "end_time": "16:00",
        "price": 14.5,
        "is_active": True,
    }])
    gw.seed("dishes", [
        {"menu_id": "m1", "name": {"es_ES": "Gazpacho"}, "category": "firstCourses"},
        {"menu_id": "m1", "name": {"es_ES": "Lubina"}, "category": "secondCourses"},
    ])
    gw.references("menus", "restaurant_id", "restaurants")
    gw.references("dishes", "menu_id", "menus")
    return gw


# Helpers
def banner(title: str) -> None:
    print(f"\n{'─' * 50}\n{title}\n{'─' * 50}")


def run(main: Callable[[], Coroutine[object, object, None]]) -> None:
    asyncio.run(main())
