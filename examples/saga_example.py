"""
Menu saga — create a menu and its dishes, undo the menu row if the dishes fail.

Level 5: menuteca.stores.MenuStore
Level 4: menuteca.saga
Level 2: kungfu.Result
"""

from kungfu import Ok, Error

from menuteca.config import Settings
from menuteca.services import build_services
from menuteca.stores import DishDraft, MenuDraft
from examples._infra import OWNER, ManualClock, banner, run, seeded_gateway


def draft(name: str) -> MenuDraft:
    return MenuDraft(
        name=name,
        days=("thursday", "friday"),
        start_time="13:30",
        end_time="16:00",
        price=16.0,
        dishes=(
            DishDraft("Esqueixada", category="firstCourses"),
            DishDraft("Fideuà", category="mainCourses", extra_price=2.0),
        ),
    )


async def main() -> None:
    banner("Saga: create menu with dishes")

    gw = seeded_gateway(latency=0)
    services = build_services(gw, Settings(), ManualClock())
    menus = services.menus
    gw.sign_in(OWNER)

    cached = await menus.fetch_restaurant_menus("r1")
    print(f"\nCached menus: {[m.name for m in cached]}")

    print("\n1. Dish insert fails → menu row deleted again:")
    gw.fail_next("insert", "dishes")
    match await menus.create_menu_with_dishes("r1", draft("Menú de mercado")):
        case Ok(menu):
            print(f"   created {menu.name}")
        case Error(e):
            print(f"   {e.kind.name}: {e}")
    print(f"   menu rows: {len(gw.rows('menus'))}")
    print(f"   cached: {[m.name for m in menus.get_menus_by_restaurant_id('r1') or []]}")

    print("\n2. Happy path → cached list patched in place:")
    match await menus.create_menu_with_dishes("r1", draft("Menú de mercado")):
        case Ok(menu):
            print(f"   created {menu.name} with {[d.name for d in menu.dishes]}")
        case Error(e):
            print(f"   {e.kind.name}: {e}")
    print(f"   cached: {[m.name for m in menus.get_menus_by_restaurant_id('r1') or []]}")

    print("\n3. Someone else's restaurant:")
    match await menus.create_menu_with_dishes("r2", draft("Intruso")):
        case Ok(_):
            print("   unexpectedly created")
        case Error(e):
            print(f"   {e.kind.name}: {e}")

    print("\nDone!")


if __name__ == "__main__":
    run(main)
