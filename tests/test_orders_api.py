from __future__ import annotations

import json

import pytest


def _feteer(**extra):
    body = {"customer_name": "Mona", "item_type": "feteer", "feteer_type": "Feteer Lahma Meshakala"}
    body.update(extra)
    return body


def test_create_feteer_order_prices_from_menu(client, cashier_headers):
    r = client.post(
        "/api/orders",
        json=_feteer(additional_meat_selection=["Basterma", "Farkha"], meat_selection=["Sogoq Masri", "Basterma"]),
        headers=cashier_headers,
    )
    assert r.status_code == 201
    o = r.json()
    assert o["id"] > 0
    assert o["customer_name"] == "Mona"
    assert o["status"] == "ordered"
    assert o["price"] == 16.0
    assert o["meat_selection"] == "Sogoq Masri,Basterma"
    assert o["created_at"]


def test_create_with_extra_nutella(client, cashier_headers):
    body = {"customer_name": "Ali", "item_type": "feteer", "feteer_type": "Feteer Helw (Custard w Sugar)", "extra_nutella": "true"}
    r = client.post("/api/orders", json=body, headers=cashier_headers)
    assert r.status_code == 201
    assert r.json()["price"] == 10.0
    assert r.json()["extra_nutella"] is True


def test_create_sweet_order_with_selections(client, cashier_headers):
    body = {"customer_name": "Hoda", "item_type": "sweet", "sweet_selections": {"Basbousa": 2, "Konafa": 1}}
    r = client.post("/api/orders", json=body, headers=cashier_headers)
    assert r.status_code == 201
    o = r.json()
    assert o["price"] == 17.0
    assert json.loads(o["sweet_selections"]) == {"Basbousa": 2, "Konafa": 1}


def test_create_sweet_order_with_single_type(client, cashier_headers):
    body = {"customer_name": "Hoda", "item_type": "sweet", "sweet_type": "Om Ali"}
    r = client.post("/api/orders", json=body, headers=cashier_headers)
    assert r.status_code == 201
    assert r.json()["price"] == 6.0


def test_bad_sweet_selections_price_as_zero(client, cashier_headers):
    body = {"customer_name": "Hoda", "item_type": "sweet", "sweet_selections": "{not json"}
    r = client.post("/api/orders", json=body, headers=cashier_headers)
    assert r.status_code == 201
    assert r.json()["price"] == 0.0


@pytest.mark.parametrize(
    "body",
    [
        {"item_type": "feteer", "feteer_type": "Feteer Meshaltet (Plain)"},
        {"customer_name": "  ", "item_type": "feteer", "feteer_type": "Feteer Meshaltet (Plain)"},
        {"customer_name": "X"},
        {"customer_name": "X", "item_type": "pizza"},
        {"customer_name": "X", "item_type": "feteer"},
        {"customer_name": "X", "item_type": "sweet"},
        {"customer_name": "X", "item_type": "feteer", "feteer_type": "Feteer Meshaltet (Plain)", "status": "burnt"},
    ],
)
def test_create_rejects_invalid_input(client, cashier_headers, body):
    r = client.post("/api/orders", json=body, headers=cashier_headers)
    assert r.status_code == 400


def test_list_orders_newest_first_and_filter(client, cashier_headers):
    ids = []
    for name in ("A", "B", "C"):
        r = client.post("/api/orders", json=_feteer(customer_name=name), headers=cashier_headers)
        ids.append(r.json()["id"])
    client.patch(f"/api/orders/{ids[0]}", json={"status": "completed"}, headers=cashier_headers)

    r = client.get("/api/orders", headers=cashier_headers)
    assert r.status_code == 200
    assert [o["id"] for o in r.json()] == list(reversed(ids))

    r = client.get("/api/orders", params={"status": "completed"}, headers=cashier_headers)
    assert [o["id"] for o in r.json()] == [ids[0]]

    r = client.get("/api/orders", params={"status": "ordered,completed"}, headers=cashier_headers)
    assert len(r.json()) == 3

    r = client.get("/api/orders", params={"status": "all"}, headers=cashier_headers)
    assert len(r.json()) == 3


def test_get_order(client, cashier_headers):
    oid = client.post("/api/orders", json=_feteer(), headers=cashier_headers).json()["id"]
    r = client.get(f"/api/orders/{oid}", headers=cashier_headers)
    assert r.status_code == 200
    assert r.json()["id"] == oid
    assert client.get("/api/orders/9999", headers=cashier_headers).status_code == 404
    assert client.get("/api/orders/abc", headers=cashier_headers).status_code == 400


def test_update_status(client, cashier_headers):
    oid = client.post("/api/orders", json=_feteer(), headers=cashier_headers).json()["id"]
    r = client.patch(f"/api/orders/{oid}", json={"status": "completed"}, headers=cashier_headers)
    assert r.status_code == 200
    assert r.json() == {"message": "order status updated", "id": oid, "status": "completed"}
    assert client.get(f"/api/orders/{oid}", headers=cashier_headers).json()["status"] == "completed"


def test_update_status_rejects_unknown_status_and_missing_order(client, cashier_headers):
    oid = client.post("/api/orders", json=_feteer(), headers=cashier_headers).json()["id"]
    assert client.patch(f"/api/orders/{oid}", json={"status": "burnt"}, headers=cashier_headers).status_code == 400
    assert client.patch(f"/api/orders/{oid}", json={}, headers=cashier_headers).status_code == 400
    assert client.patch("/api/orders/9999", json={"status": "completed"}, headers=cashier_headers).status_code == 404


def test_delete_order(client, cashier_headers):
    oid = client.post("/api/orders", json=_feteer(), headers=cashier_headers).json()["id"]
    r = client.delete(f"/api/orders/{oid}", headers=cashier_headers)
    assert r.status_code == 200
    assert client.get(f"/api/orders/{oid}", headers=cashier_headers).status_code == 404
    assert client.delete(f"/api/orders/{oid}", headers=cashier_headers).status_code == 404


def test_status_domain_is_configurable(client, cashier_headers, monkeypatch):
    from apps.orders.app import main as orders  # type: ignore[import]

    monkeypatch.setattr(orders, "ORDER_STATUSES", ("pending", "in-progress", "completed", "cancelled"))
    o = client.post("/api/orders", json=_feteer(), headers=cashier_headers).json()
    assert o["status"] == "pending"
    r = client.patch(f"/api/orders/{o['id']}", json={"status": "in-progress"}, headers=cashier_headers)
    assert r.status_code == 200
    r = client.patch(f"/api/orders/{o['id']}", json={"status": "ordered"}, headers=cashier_headers)
    assert r.status_code == 400
