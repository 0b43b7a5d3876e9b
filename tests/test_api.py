"""End-to-end tests for the HTTP API (in-memory SQLite, no language model)."""

from decimal import Decimal

from storechat.db import SessionLocal
from storechat.inventory import SqlInventory

CHAT = "/retailers/r1/chat"


def _say(client, headers, message, **extra):
    r = client.post(CHAT, json={"message": message, **extra}, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


def _set_stock(name, stock_qty, unit, unit_price):
    db = SessionLocal()
    try:
        SqlInventory(db).upsert_items("r1", [{"name": name, "unit": unit, "stock_qty": stock_qty, "unit_price": unit_price}])
    finally:
        db.close()


def test_health(client):
    assert client.get("/").json()["ok"] is True


def test_chat_requires_a_valid_token(client):
    assert client.post(CHAT, json={"message": "yes"}).status_code == 401
    bad = {"Authorization": "Bearer not-a-token"}
    assert client.post(CHAT, json={"message": "yes"}, headers=bad).status_code == 401


def test_unknown_retailer_is_404(client, auth_headers):
    r = client.post("/retailers/nowhere/chat", json={"message": "2kg rice"}, headers=auth_headers)
    assert r.status_code == 404
    assert client.get("/retailers/nowhere/catalog").status_code == 404


def test_catalog_listing(client):
    data = client.get("/retailers/r1/catalog").json()
    assert data["currency"] == "INR"
    assert {it["name"] for it in data["items"]} >= {"Rice", "Milk", "Onion"}


def test_chat_then_order(client, auth_headers):
    body = _say(client, auth_headers, "2kg rice, 1 litre milk")
    assert body["cart"]["state"] == "building"
    assert [x["name"] for x in body["summary"]["available"]] == ["Rice"]
    (milk,) = body["summary"]["unavailable"]
    assert milk["name"] == "Milk"
    assert milk["reason"] == "insufficient stock"
    assert "Curd" in milk["alternatives"]

    body = _say(client, auth_headers, "cart")
    assert body["cart"]["state"] == "awaiting_confirmation"

    r = client.post("/retailers/r1/order", json={"notes": "ring the bell"}, headers=auth_headers)
    assert r.status_code == 200, r.text
    placed = r.json()
    assert placed["items_count"] == 1
    assert placed["total"] == "240.00"

    orders = client.get("/retailers/r1/orders", headers=auth_headers).json()["orders"]
    assert [o["order_id"] for o in orders] == [placed["order_id"]]
    assert orders[0]["notes"] == "ring the bell"

    items = {it["name"]: it for it in client.get("/retailers/r1/catalog").json()["items"]}
    assert Decimal(items["Rice"]["stock_qty"]) == Decimal("8")


def test_confirm_in_chat(client, auth_headers):
    _say(client, auth_headers, "1kg rice")
    _say(client, auth_headers, "cart")
    body = _say(client, auth_headers, "yes")

    assert body["order"] is not None
    assert body["order"]["items_count"] == 1
    assert body["cart"]["state"] == "committed"


def test_order_with_empty_cart_is_400(client, auth_headers):
    r = client.post("/retailers/r1/order", json={}, headers=auth_headers)
    assert r.status_code == 400


def test_stock_change_before_order_is_409(client, auth_headers):
    _say(client, auth_headers, "3kg rice")
    _say(client, auth_headers, "cart")
    _set_stock("Rice", 1, "kg", 120)

    r = client.post("/retailers/r1/order", json={}, headers=auth_headers)
    assert r.status_code == 409
    detail = r.json()["detail"]
    assert detail["conflict"] is True
    assert detail["changed_lines"][0]["name"] == "Rice"

    cart = client.get("/retailers/r1/cart", headers=auth_headers).json()
    assert cart["cart"]["state"] == "building"
    assert client.get("/retailers/r1/orders", headers=auth_headers).json()["orders"] == []


def test_detected_items_are_validated(client, auth_headers):
    body = _say(
        client,
        auth_headers,
        "chicken curry for 4",
        detected_items=[{"name": "rice", "quantity": 2, "unit": "kg"}, {"name": "", "quantity": 1}],
    )
    assert [x["name"] for x in body["summary"]["available"]] == ["Rice"]
    assert [x["requested_name"] for x in body["summary"]["unavailable"]] == ["?"]


def test_cart_view_does_not_move_state(client, auth_headers):
    _say(client, auth_headers, "2kg rice")
    data = client.get("/retailers/r1/cart", headers=auth_headers).json()
    assert data["cart"]["state"] == "building"
    assert data["summary"]["available"][0]["name"] == "Rice"


def test_cancel_is_idempotent(client, auth_headers):
    _say(client, auth_headers, "2kg rice")
    for _ in range(2):
        r = client.post("/retailers/r1/cart/cancel", headers=auth_headers)
        assert r.status_code == 200
        assert r.json()["cart"]["state"] == "cancelled"


def test_staples_are_recovered_without_the_language_model(client, auth_headers):
    body = _say(client, auth_headers, "I want rice and milk")
    assert body["cart"]["state"] == "building"
    (rice,) = body["summary"]["available"]
    assert rice["name"] == "Rice"
    assert rice["quantity"] == "1"
    assert [x["name"] for x in body["summary"]["unavailable"]] == ["Milk"]


def test_local_name_removal_over_http(client, auth_headers):
    _say(client, auth_headers, "2kg rice, 2kg tomato")
    body = _say(client, auth_headers, "tamatar hatao", language="hi")
    assert [it["name"] for it in body["cart"]["items"]] == ["Rice"]


def test_oversized_quantity_is_not_a_server_error(client, auth_headers):
    body = _say(
        client,
        auth_headers,
        "rice",
        detected_items=[{"name": "rice", "quantity": 1e30, "unit": "kg"}, {"name": "onion", "quantity": 1, "unit": "kg"}],
    )
    assert [x["requested_name"] for x in body["summary"]["unavailable"]] == ["rice"]
    assert body["cart"]["items"][0]["name"] == "Onion"
