import argparse
import logging

from apps.orders.app.store import OrderStore

_log = logging.getLogger("feteer.store")

DEFAULT_MENU = {
    "feteer": [
        {"item_name": "Feteer Helw (Custard w Sugar)", "item_name_arabic": "فطير حلو (كاسترد وسكر)", "price": 8.0},
        {"item_name": "Feteer Lahma Meshakala", "item_name_arabic": "فطير باللحمة المشكلة", "price": 12.0},
        {"item_name": "Feteer Gebna Meshakala", "item_name_arabic": "فطير بالجبنة المشكلة", "price": 10.0},
        {"item_name": "Feteer Meshaltet (Plain)", "item_name_arabic": "فطير مشلتت", "price": 6.0},
    ],
    "sweets": [
        {"item_name": "Basbousa", "item_name_arabic": "بسبوسة", "price": 5.0},
        {"item_name": "Konafa", "item_name_arabic": "كنافة", "price": 7.0},
        {"item_name": "Om Ali", "item_name_arabic": "أم علي", "price": 6.0},
        {"item_name": "Baklawa", "item_name_arabic": "بقلاوة", "price": 4.0},
        {"item_name": "Muhallabeya", "item_name_arabic": "مهلبية", "price": 4.5},
        {"item_name": "Roz bel Laban", "item_name_arabic": "رز بلبن", "price": 4.0},
    ],
    "meats": [
        {"name": "Sogoq Masri", "name_arabic": "سجق مصري", "price": 0.0, "is_default": True},
        {"name": "Lahma Mafrouma", "name_arabic": "لحمة مفرومة", "price": 0.0, "is_default": True},
        {"name": "Basterma", "name_arabic": "بسطرمة", "price": 0.0, "is_default": True},
        {"name": "Farkha", "name_arabic": "فراخ", "price": 0.0, "is_default": False},
    ],
    "cheeses": [
        {"name": "Gebna Beida", "name_arabic": "جبنة بيضاء", "price": 0.0},
        {"name": "Gebna Roumi", "name_arabic": "جبنة رومي", "price": 0.0},
        {"name": "Mozzarella", "name_arabic": "موتزاريلا", "price": 0.0},
        {"name": "Gebna Feta", "name_arabic": "جبنة فيتا", "price": 0.0},
    ],
    "toppings": [
        {"name": "Nutella Zeyada", "name_arabic": "نوتيلا إضافية", "price": 2.0, "feteer_type": "Feteer Helw (Custard w Sugar)"},
    ],
}


def seed_menu(store: OrderStore, reset: bool = False) -> None:
    """Install the default menu; with `reset` the current menu is wiped first."""
    if reset:
        store.clear_menu()
    for kind, entries in DEFAULT_MENU.items():
        for entry in entries:
            store.create_menu_entry(kind, dict(entry))
    _log.info("default menu installed")


def seed_menu_if_empty(store: OrderStore) -> bool:
    if not store.menu_is_empty():
        return False
    seed_menu(store)
    return True


def main() -> None:
    parser = argparse.ArgumentParser(description="Install the default feteer/sweets menu.")
    parser.add_argument("--reset", action="store_true", help="wipe the existing menu first")
    args = parser.parse_args()
    store = OrderStore.from_env()
    store.create_schema()
    if args.reset:
        seed_menu(store, reset=True)
    elif not seed_menu_if_empty(store):
        print("menu already seeded")


if __name__ == "__main__":
    main()
