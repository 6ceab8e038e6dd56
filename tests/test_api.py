"""HTTP surface tests: auth, error mapping and the main flows end to end."""
from decimal import Decimal

import pytest

from conftest import CUSTOMER_ID, OTHER_CUSTOMER_ID, auth_headers


@pytest.fixture
def order_events(monkeypatch):
    sent = []
    monkeypatch.setattr(
        "bookstore.api.orders.emit_order_event",
        lambda event_type, order, **extra: sent.append((event_type, order.id, order.status.value, extra)),
    )
    return sent


@pytest.fixture
def inventory_events(monkeypatch):
    sent = []
    monkeypatch.setattr(
        "bookstore.api.inventory.emit_inventory_event",
        lambda event_type, book_id, **extra: sent.append((event_type, book_id, extra)),
    )
    return sent


def test_health_and_info(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/v1/_info").json()["service"] == "bookstore"


def test_auth_is_required(client, books, customer_headers, staff_headers):
    assert client.get("/v1/cart").status_code == 401
    assert client.get("/v1/cart", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401
    assert client.get("/v1/admin/orders", headers=customer_headers).status_code == 403
    assert client.get("/v1/admin/promotions", headers=staff_headers).status_code == 403
    assert client.post("/v1/staff/orders", headers=customer_headers, json={
        "order_details": [{"book_id": books["dune"].id, "quantity": 1}], "payment_method": "Cash",
    }).status_code == 403


def test_cart_endpoints(client, books, customer_headers):
    dune, emma = books["dune"], books["emma"]

    r = client.post("/v1/cart/items", headers=customer_headers, json={"book_id": dune.id, "quantity": 2})
    assert r.status_code == 201
    r = client.post("/v1/cart/items", headers=customer_headers, json={"book_id": dune.id, "quantity": 1})
    assert r.json()["items"][0]["quantity"] == 3

    client.post("/v1/cart/items", headers=customer_headers, json={"book_id": emma.id, "quantity": 1})
    r = client.patch(f"/v1/cart/items/{emma.id}", headers=customer_headers, json={"quantity": 4})
    items = {i["book_id"]: i for i in r.json()["items"]}
    assert items[emma.id]["quantity"] == 4
    assert Decimal(items[emma.id]["unit_price"]) == Decimal("25.50")

    r = client.delete(f"/v1/cart/items/{dune.id}", headers=customer_headers)
    assert [i["book_id"] for i in r.json()["items"]] == [emma.id]

    r = client.post("/v1/cart/clear", headers=customer_headers)
    assert r.json()["items"] == []


def test_cart_rejects_unknown_book(client, books, customer_headers):
    r = client.post("/v1/cart/items", headers=customer_headers, json={"book_id": 999, "quantity": 1})
    assert r.status_code == 404
    assert r.json()["title"] == "Not Found"
    assert r.json()["status"] == 404


def test_online_order_flow(client, books, address, promotions, customer_headers, order_events):
    client.post("/v1/cart/items", headers=customer_headers, json={"book_id": books["dune"].id, "quantity": 2})
    client.post("/v1/cart/items", headers=customer_headers, json={"book_id": books["emma"].id, "quantity": 1})

    r = client.post("/v1/orders", headers=customer_headers, json={
        "shipping_address_id": address.id, "promotion_code": "SAVE10",
    })
    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "Pending"
    assert body["order_type"] == "Online"
    assert Decimal(body["subtotal_amount"]) == Decimal("45.50")
    assert Decimal(body["discount_amount"]) == Decimal("4.55")
    assert Decimal(body["total_amount"]) == Decimal("40.95")
    assert body["shipping_address"]["city"] == "London"
    assert len(body["details"]) == 2
    order_id = body["id"]

    assert client.get("/v1/cart", headers=customer_headers).json()["items"] == []
    assert [o["id"] for o in client.get("/v1/orders", headers=customer_headers).json()] == [order_id]
    assert client.get(f"/v1/orders/{order_id}", headers=customer_headers).status_code == 200
    other = auth_headers(OTHER_CUSTOMER_ID, "customer")
    assert client.get(f"/v1/orders/{order_id}", headers=other).status_code == 404

    r = client.put(f"/v1/orders/{order_id}/cancel", headers=customer_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "Cancelled"

    assert [e[:3] for e in order_events] == [
        ("order.created", order_id, "Pending"),
        ("order.status_changed", order_id, "Cancelled"),
    ]
    assert order_events[1][3] == {"changed_by": CUSTOMER_ID}


def test_business_errors_map_to_400(client, books, address, customer_headers, order_events):
    r = client.post("/v1/orders", headers=customer_headers, json={"shipping_address_id": address.id})
    assert r.status_code == 400
    assert r.json() == {
        "title": "Bad Request", "status": 400, "detail": "Cannot create order from an empty cart.",
    }

    client.post("/v1/cart/items", headers=customer_headers, json={"book_id": books["emma"].id, "quantity": 9})
    r = client.post("/v1/orders", headers=customer_headers, json={"shipping_address_id": address.id})
    assert r.status_code == 400
    assert "Insufficient stock" in r.json()["detail"]
    assert order_events == []


def test_staff_in_store_order(client, books, staff_headers, order_events):
    r = client.post("/v1/staff/orders", headers=staff_headers, json={
        "customer_user_id": CUSTOMER_ID,
        "order_details": [{"book_id": books["dune"].id, "quantity": 2}],
        "payment_method": "Card",
        "staff_notes": "gift wrap",
    })
    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "Completed"
    assert body["payment_status"] == "Completed"
    assert body["delivery_method"] == "Pickup"
    assert body["user_id"] == CUSTOMER_ID
    assert body["shipping_address"] is None
    assert order_events == [("order.created", body["id"], "Completed", {})]

    r = client.post("/v1/staff/orders", headers=staff_headers, json={
        "order_details": [{"book_id": books["dune"].id, "quantity": 101}], "payment_method": "Cash",
    })
    assert r.status_code == 422


def test_admin_order_management(client, books, address, customer_headers, staff_headers, admin_headers, order_events):
    client.post("/v1/cart/items", headers=customer_headers, json={"book_id": books["dune"].id, "quantity": 1})
    order_id = client.post("/v1/orders", headers=customer_headers, json={"shipping_address_id": address.id}).json()["id"]

    r = client.get("/v1/admin/orders", headers=admin_headers, params={"status": "Pending"})
    assert r.json()["total_count"] == 1

    r = client.get("/v1/admin/orders", headers=admin_headers, params={"page": 0, "page_size": 500})
    assert (r.json()["page"], r.json()["page_size"]) == (1, 100)
    assert client.get(f"/v1/admin/orders/{order_id}", headers=admin_headers).json()["id"] == order_id
    assert client.get("/v1/admin/orders/9999", headers=admin_headers).status_code == 404

    r = client.put(f"/v1/admin/orders/{order_id}/status", headers=staff_headers, json={"new_status": "Confirmed"})
    assert r.status_code == 403

    r = client.put(f"/v1/admin/orders/{order_id}/status", headers=admin_headers, json={"new_status": "Confirmed"})
    assert r.status_code == 200
    assert r.json()["status"] == "Confirmed"

    r = client.put(f"/v1/admin/orders/{order_id}/status", headers=admin_headers, json={"new_status": "Completed"})
    assert r.status_code == 400
    assert "Confirmed" in r.json()["detail"]

    r = client.put("/v1/admin/orders/9999/status", headers=admin_headers, json={"new_status": "Confirmed"})
    assert r.status_code == 404

    r = client.put(f"/v1/orders/{order_id}/cancel", headers=customer_headers)
    assert r.status_code == 400


def test_inventory_endpoints(client, books, admin_headers, inventory_events):
    dune_id = books["dune"].id

    r = client.post("/v1/admin/inventory/adjust", headers=admin_headers, json={
        "book_id": dune_id, "change_quantity": -1, "notes": "torn cover",
    })
    assert r.json() == {"book_id": dune_id, "new_quantity": 9}
    assert inventory_events[0][0] == "inventory.adjusted"

    r = client.post("/v1/admin/inventory/adjust", headers=admin_headers, json={
        "book_id": dune_id, "change_quantity": 5, "reason": "OnlineSale",
    })
    assert r.status_code == 400

    r = client.get("/v1/admin/inventory/history", headers=admin_headers, params={"book_id": dune_id})
    body = r.json()
    assert body["total_count"] == 2
    assert body["page_size"] == 20
    r = client.get("/v1/admin/inventory/history", headers=admin_headers, params={"book_id": dune_id, "page_size": 1000})
    assert r.json()["page_size"] == 100
    assert [i["reason"] for i in body["items"]] == ["Adjustment", "InitialStock"]

    r = client.get(f"/v1/admin/inventory/books/{dune_id}", headers=admin_headers)
    assert r.json() == {"book_id": dune_id, "stock_quantity": 9, "ledger_balance": 9}
    assert client.get("/v1/admin/inventory/books/999", headers=admin_headers).status_code == 404


def test_stock_receipt_endpoints(client, books, supplier, admin_headers, inventory_events):
    r = client.post("/v1/admin/stock-receipts", headers=admin_headers, json={
        "supplier_id": supplier.id,
        "notes": "weekly delivery",
        "details": [
            {"book_id": books["dune"].id, "quantity_received": 5, "purchase_price": "4.00"},
            {"book_id": books["emma"].id, "quantity_received": 2},
        ],
    })
    assert r.status_code == 201
    receipt = r.json()
    assert len(receipt["details"]) == 2
    assert [e[0] for e in inventory_events] == ["stock.received", "stock.received"]

    assert client.get(f"/v1/admin/stock-receipts/{receipt['id']}", headers=admin_headers).json()["notes"] == "weekly delivery"
    assert len(client.get("/v1/admin/stock-receipts", headers=admin_headers).json()) == 1
    assert client.get("/v1/admin/stock-receipts/77", headers=admin_headers).status_code == 404

    r = client.post("/v1/admin/stock-receipts", headers=admin_headers, json={
        "details": [{"book_id": books["retired"].id, "quantity_received": 1}],
    })
    assert r.status_code == 404


def test_promotion_endpoints(client, promotions, admin_headers, customer_headers):
    r = client.post("/v1/admin/promotions", headers=admin_headers, json={
        "code": "Spring5", "discount_amount": "5.00", "start_date": "2025-01-01T00:00:00", "max_usage": 50,
    })
    assert r.status_code == 201
    promo_id = r.json()["id"]
    assert r.json()["current_usage"] == 0

    r = client.post("/v1/admin/promotions", headers=admin_headers, json={
        "code": "SPRING5", "discount_percentage": "5", "start_date": "2025-01-01T00:00:00",
    })
    assert r.status_code == 400

    assert client.get("/v1/admin/promotions/by-code/spring5", headers=admin_headers).json()["id"] == promo_id

    r = client.patch(f"/v1/admin/promotions/{promo_id}", headers=admin_headers, json={"is_active": False})
    assert r.json()["is_active"] is False
    active = client.get("/v1/admin/promotions", headers=admin_headers, params={"active_only": True}).json()
    assert "Spring5" not in {p["code"] for p in active}

    r = client.post("/v1/promotions/validate", headers=customer_headers, json={"code": "save10", "subtotal": "20.00"})
    assert Decimal(r.json()["discount_amount"]) == Decimal("2.00")
    assert Decimal(r.json()["total_after_discount"]) == Decimal("18.00")
    r = client.post("/v1/promotions/validate", headers=customer_headers, json={"code": "EXPIRED", "subtotal": "20.00"})
    assert r.status_code == 400

    assert client.delete(f"/v1/admin/promotions/{promo_id}", headers=admin_headers).status_code == 204
    assert client.get(f"/v1/admin/promotions/{promo_id}", headers=admin_headers).status_code == 404


def test_promotion_dates_with_timezone_are_stored_as_utc(client, promotions, admin_headers):
    promo_id = promotions["save10"].id

    r = client.patch(f"/v1/admin/promotions/{promo_id}", headers=admin_headers, json={"end_date": "2030-01-01T00:00:00Z"})
    assert r.status_code == 200
    assert r.json()["end_date"] == "2030-01-01T00:00:00"

    r = client.patch(f"/v1/admin/promotions/{promo_id}", headers=admin_headers, json={"end_date": "2030-01-01T02:00:00+02:00"})
    assert r.json()["end_date"] == "2030-01-01T00:00:00"

    r = client.post("/v1/admin/promotions", headers=admin_headers, json={
        "code": "ZULU", "discount_amount": "1.00",
        "start_date": "2025-06-01T00:00:00Z", "end_date": "2025-05-31T23:00:00-02:00",
    })
    assert r.status_code == 201
    assert r.json()["start_date"] == "2025-06-01T00:00:00"
    assert r.json()["end_date"] == "2025-06-01T01:00:00"
