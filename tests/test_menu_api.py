from __future__ import annotations

from apps.orders.app.seed import DEFAULT_MENU, seed_menu_if_empty  # type: ignore[import]


def test_menu_snapshot_has_all_kinds(client, cashier_headers):
    r = client.get("/api/menu", headers=cashier_headers)
    assert r.status_code == 200
    menu = r.json()
    assert set(menu) == {"feteer_types", "sweet_types", "meat_types", "cheese_types", "extra_toppings"}
    assert len(menu["feteer_types"]) == len(DEFAULT_MENU["feteer"])
    assert {m["item_type"] for m in menu["sweet_types"]} == {"sweet"}
    assert any(m["is_default"] for m in menu["meat_types"])


def test_menu_requires_login(client):
    assert client.get("/api/menu").status_code == 401


def test_list_menu_kind(client, cashier_headers):
    r = client.get("/api/menu/cheeses", headers=cashier_headers)
    assert r.status_code == 200
    assert [c["name"] for c in r.json()] == [c["name"] for c in DEFAULT_MENU["cheeses"]]
    assert client.get("/api/menu/drinks", headers=cashier_headers).status_code == 404


def test_admin_creates_updates_and_deletes_feteer(client, admin_headers):
    r = client.post(
        "/api/menu/feteer",
        json={"item_name": "Feteer Nutella", "item_name_arabic": "فطير نوتيلا", "price": 11.5},
        headers=admin_headers,
    )
    assert r.status_code == 201
    entry = r.json()
    assert entry["item_type"] == "feteer"
    assert entry["available"] is True

    r = client.put(f"/api/menu/feteer/{entry['id']}", json={"price": 12.0, "available": False}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json() == {"success": True}
    row = next(m for m in client.get("/api/menu/feteer", headers=admin_headers).json() if m["id"] == entry["id"])
    assert row["price"] == 12.0
    assert row["available"] is False

    r = client.delete(f"/api/menu/feteer/{entry['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert client.delete(f"/api/menu/feteer/{entry['id']}", headers=admin_headers).status_code == 404


def test_feteer_id_is_not_reachable_as_sweet(client, admin_headers):
    feteer_id = client.get("/api/menu/feteer", headers=admin_headers).json()[0]["id"]
    r = client.put(f"/api/menu/sweets/{feteer_id}", json={"price": 1.0}, headers=admin_headers)
    assert r.status_code == 404


def test_admin_creates_topping(client, admin_headers):
    r = client.post(
        "/api/menu/toppings",
        json={"name": "Honey", "price": 1.5, "feteer_type": "Feteer Meshaltet (Plain)"},
        headers=admin_headers,
    )
    assert r.status_code == 201
    assert r.json()["feteer_type"] == "Feteer Meshaltet (Plain)"


def test_menu_create_validation(client, admin_headers):
    assert client.post("/api/menu/feteer", json={"item_name": "X"}, headers=admin_headers).status_code == 400
    assert client.post("/api/menu/meats", json={"price": 1.0}, headers=admin_headers).status_code == 400
    assert client.post("/api/menu/drinks", json={"name": "Tea"}, headers=admin_headers).status_code == 404


def test_cashier_cannot_edit_menu(client, cashier_headers):
    r = client.post("/api/menu/feteer", json={"item_name": "X", "price": 1.0}, headers=cashier_headers)
    assert r.status_code == 403


def test_menu_price_change_affects_new_orders(client, admin_headers):
    feteer = next(
        m for m in client.get("/api/menu/feteer", headers=admin_headers).json()
        if m["item_name"] == "Feteer Meshaltet (Plain)"
    )
    client.put(f"/api/menu/feteer/{feteer['id']}", json={"price": 9.0}, headers=admin_headers)
    body = {"customer_name": "Z", "item_type": "feteer", "feteer_type": "Feteer Meshaltet (Plain)"}
    r = client.post("/api/orders", json=body, headers=admin_headers)
    assert r.json()["price"] == 9.0


def test_seed_only_when_empty(store):
    assert seed_menu_if_empty(store) is False
    store.clear_menu()
    assert store.menu_is_empty()
    assert seed_menu_if_empty(store) is True
    assert len(store.list_menu("sweets")) == len(DEFAULT_MENU["sweets"])
