from datetime import datetime, timedelta

from app.models.order import Order
from tests.fixtures_data import (
    PIZZA_HEADERS,
    PIZZA_MANAGER,
    SUSHI_HEADERS,
    SUSHI_MANAGER,
    auth_headers,
    build_client,
    db_of,
)


def _place_orders(client):
    client.post(
        "/api/orders/guest",
        json={"items": [{"menu_item_id": 1, "quantity": 3}], "payment_method": "card"},
        headers=PIZZA_HEADERS,
    )
    client.post("/api/orders/guest", json={"items": [{"menu_item_id": 2, "quantity": 1}]}, headers=PIZZA_HEADERS)
    client.post("/api/orders/guest", json={"items": [{"menu_item_id": 3, "quantity": 5}]}, headers=SUSHI_HEADERS)


def test_analytics_only_counts_own_restaurant():
    client = build_client()
    _place_orders(client)

    pizza = client.get("/api/dashboard/analytics", headers=auth_headers(client, PIZZA_MANAGER)).json()
    sushi = client.get("/api/dashboard/analytics", headers=auth_headers(client, SUSHI_MANAGER)).json()

    assert pizza["data"]["stats"]["total_orders"] == 2
    assert pizza["data"]["stats"]["total_revenue"] == 42.5
    assert pizza["data"]["stats"]["pending_orders"] == 2
    assert sushi["data"]["stats"]["total_orders"] == 1
    assert sushi["data"]["stats"]["total_revenue"] == 40.0


def test_top_selling_items_and_payment_methods():
    client = build_client()
    _place_orders(client)
    headers = auth_headers(client, PIZZA_MANAGER)

    top = client.get("/api/dashboard/top-selling-items?limit=5", headers=headers).json()["data"]
    methods = client.get("/api/dashboard/payment-methods", headers=headers).json()["data"]

    assert [(item["name"], item["orders"]) for item in top] == [("Margherita", 3), ("Pepperoni", 1)]
    assert top[0]["revenue"] == 30.0
    assert methods["totalOrders"] == 2
    assert {m["method"]: m["percentage"] for m in methods["methods"]} == {"card": 50, "cash": 50}


def test_recent_orders_include_item_names():
    client = build_client()
    _place_orders(client)

    data = client.get("/api/dashboard/recent-orders", headers=auth_headers(client, PIZZA_MANAGER)).json()["data"]

    assert len(data) == 2
    assert all(order["customer"] == "Guest" for order in data)
    assert {item["name"] for order in data for item in order["items"]} == {"Margherita", "Pepperoni"}


def test_orders_by_period_rejects_unknown_period():
    client = build_client()

    response = client.get(
        "/api/dashboard/orders-by-period?period=yesterday",
        headers=auth_headers(client, PIZZA_MANAGER),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid period"


def test_orders_by_period_totals_match_orders():
    client = build_client()
    _place_orders(client)

    data = client.get(
        "/api/dashboard/orders-by-period?period=30days",
        headers=auth_headers(client, PIZZA_MANAGER),
    ).json()["data"]

    assert data["totalOrders"] == 2
    assert data["totalRevenue"] == 42.5


def test_orders_a_week_apart_land_in_separate_day_buckets():
    client = build_client()
    _place_orders(client)
    db = db_of(client)
    older, newer = db.query(Order).filter(Order.restaurant_id == 1).order_by(Order.id.asc()).all()
    now = datetime.utcnow()
    older.created_at = now - timedelta(days=7)
    newer.created_at = now
    db.commit()

    data = client.get(
        "/api/dashboard/orders-by-period?period=7days",
        headers=auth_headers(client, PIZZA_MANAGER),
    ).json()["data"]

    assert [(bucket["time"], bucket["value"], bucket["sales"]) for bucket in data["data"]] == [
        ((now - timedelta(days=7)).date().isoformat(), 1, 30.0),
        (now.date().isoformat(), 1, 12.5),
    ]
    assert data["totalOrders"] == 2
