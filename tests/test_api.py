import pytest
from fastapi.testclient import TestClient

from inventory_service.app import app as inventory_app
from notification_service.app import app as notification_app
from order_service.app import app as order_app

CUSTOMER = {"X-User-Id": "u-1"}
ADMIN = {"X-User-Id": "u-admin", "X-User-Role": "admin"}


@pytest.fixture
def orders_client(intake, lookup):
    order_app.state.intake = intake
    order_app.state.lookup = lookup
    return TestClient(order_app)


@pytest.fixture
def inventory_client(reservations):
    inventory_app.state.reservations = reservations
    return TestClient(inventory_app)


def _order_body(address, *lines, payment="Credit Card"):
    return {
        "items": [{"product_id": pid, "quantity": qty} for pid, qty in lines],
        "shipping_address": address,
        "payment_method": payment,
    }


def test_place_and_read_order(orders_client, add_item, address):
    add_item("a", name="ProductA", price=10.0, quantity=5)

    resp = orders_client.post("/orders", json=_order_body(address, ("a", 2)), headers=CUSTOMER)
    assert resp.status_code == 201
    order = resp.json()["data"]["order"]
    assert order["status"] == "Pending"
    assert order["total_amount"] == 20.0

    resp = orders_client.get(f"/orders/{order['order_id']}", headers=CUSTOMER)
    assert resp.status_code == 200
    assert resp.json()["data"]["source"] == "cache"
    assert resp.json()["data"]["order"]["order_id"] == order["order_id"]


def test_shortage_uses_error_envelope(orders_client, add_item, address):
    add_item("a", name="ProductA", quantity=1)
    resp = orders_client.post("/orders", json=_order_body(address, ("a", 3)), headers=CUSTOMER)
    assert resp.status_code == 409
    assert resp.json() == {
        "success": False,
        "error": {
            "message": "Inventory check failed",
            "details": ["Insufficient stock for product ProductA. Available: 1, Requested: 3"],
        },
    }


def test_malformed_body_is_a_400(orders_client, address):
    resp = orders_client.post(
        "/orders", json=_order_body(address, ("a", 1), payment="Cash"), headers=CUSTOMER
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["message"] == "Validation Error"


def test_missing_caller_header_is_rejected(orders_client):
    assert orders_client.get("/orders").status_code == 400


def test_other_users_order_is_forbidden_but_admin_can_read(orders_client, add_item, address):
    add_item("a", quantity=5)
    order_id = orders_client.post(
        "/orders", json=_order_body(address, ("a", 1)), headers=CUSTOMER
    ).json()["data"]["order"]["order_id"]

    resp = orders_client.get(f"/orders/{order_id}", headers={"X-User-Id": "u-2"})
    assert resp.status_code == 403
    assert resp.json()["error"]["message"] == "Not authorized to access this order"

    assert orders_client.get(f"/orders/{order_id}", headers=ADMIN).status_code == 200
    assert orders_client.get("/orders/nope", headers=ADMIN).status_code == 404


def test_list_orders_with_pagination(orders_client, add_item, address):
    add_item("a", quantity=5)
    for _ in range(3):
        orders_client.post("/orders", json=_order_body(address, ("a", 1)), headers=CUSTOMER)

    resp = orders_client.get("/orders", params={"page": 2, "limit": 2}, headers=CUSTOMER)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert len(data["orders"]) == 1
    assert data["pagination"] == {"total": 3, "page": 2, "limit": 2, "pages": 2}

    assert orders_client.get("/orders", params={"limit": 500}, headers=CUSTOMER).status_code == 400


def test_inventory_administration(inventory_client, reservations, add_item):
    resp = inventory_client.post(
        "/inventory",
        json={"product_id": "p", "name": "Pen", "price": 1.5, "quantity": 4},
        headers=ADMIN,
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["inventory"]["available"] == 4

    resp = inventory_client.post(
        "/inventory",
        json={"product_id": "p", "name": "Pen", "price": 1.5, "quantity": 4},
        headers=ADMIN,
    )
    assert resp.status_code == 409

    resp = inventory_client.put("/inventory/p", json={"quantity": 9}, headers=ADMIN)
    assert resp.json()["data"]["inventory"]["quantity_on_hand"] == 9

    resp = inventory_client.get("/inventory/p", headers=CUSTOMER)
    assert resp.status_code == 200
    assert resp.json()["data"]["inventory"]["name"] == "Pen"

    assert inventory_client.get("/inventory/ghost", headers=CUSTOMER).status_code == 404
    assert inventory_client.put("/inventory/p", json={"quantity": -1}, headers=ADMIN).status_code == 400


def test_notification_service_accepts_send():
    client = TestClient(notification_app)
    resp = client.post(
        "/send",
        json={"recipient": "u1@example.com", "subject": "Hi", "html_body": "<p>hi</p>"},
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "sent"
    assert resp.json()["delivery_id"]
    assert client.get("/health").json() == {"status": "ok"}


def test_out_of_range_integers_are_400s(orders_client, inventory_client, add_item):
    add_item("a", quantity=5)
    resp = orders_client.get("/orders", params={"page": 10**19, "limit": 10}, headers=CUSTOMER)
    assert resp.status_code == 400
    assert resp.json()["success"] is False

    resp = inventory_client.put("/inventory/a", json={"quantity": 10**20}, headers=ADMIN)
    assert resp.status_code == 400
    resp = inventory_client.post(
        "/inventory",
        json={"product_id": "big", "name": "Big", "price": 1.0, "quantity": 10**20},
        headers=ADMIN,
    )
    assert resp.status_code == 400
