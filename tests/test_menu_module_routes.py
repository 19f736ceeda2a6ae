from decimal import Decimal

from app.models.category import Category
from app.models.menu_item import MenuItem
from app.models.subcategory import Subcategory
from app.services import storage
from tests.fixtures_data import (
    PIZZA_HEADERS,
    PIZZA_MANAGER,
    PIZZA_STAFF,
    SUSHI_HEADERS,
    auth_headers,
    build_client,
    db_of,
)


def test_public_menu_lists_only_own_active_items():
    client = build_client()
    db = db_of(client)
    db.add(MenuItem(restaurant_id=1, category_id=1, name="Retired", price=Decimal("5.00"), is_active=False))
    db.commit()

    pizza = client.get("/api/menu", headers=PIZZA_HEADERS)
    sushi = client.get("/api/menu", headers=SUSHI_HEADERS)

    assert pizza.status_code == 200
    assert {item["name"] for item in pizza.json()} == {"Margherita", "Pepperoni"}
    assert [item["name"] for item in sushi.json()] == ["California"]


def test_category_creation_ignores_caller_restaurant_id():
    client = build_client()

    response = client.post(
        "/api/menu/categories",
        json={"name": "Desserts", "restaurant_id": 2},
        headers=auth_headers(client, PIZZA_STAFF),
    )

    assert response.status_code == 201
    created = db_of(client).get(Category, response.json()["id"])
    assert created.restaurant_id == 1
    assert created.position == 2


def test_update_of_foreign_category_is_not_found():
    client = build_client()

    response = client.put(
        "/api/menu/categories/2",
        json={"name": "Stolen"},
        headers=auth_headers(client, PIZZA_STAFF),
    )

    assert response.status_code == 404
    assert db_of(client).get(Category, 2).name == "Rolls"


def test_reorder_rejects_categories_of_other_restaurants():
    client = build_client()

    response = client.put(
        "/api/menu/categories/reorder",
        json={"categoryOrders": [{"id": 1, "position": 5}, {"id": 2, "position": 1}]},
        headers=auth_headers(client, PIZZA_STAFF),
    )

    assert response.status_code == 404
    assert db_of(client).get(Category, 1).position == 1


def test_soft_delete_refused_while_category_has_active_items():
    client = build_client()

    response = client.delete("/api/menu/categories/1", headers=auth_headers(client, PIZZA_STAFF))

    assert response.status_code == 400
    assert db_of(client).get(Category, 1).is_active is True


def test_cascade_delete_removes_children_even_when_an_image_fails(monkeypatch):
    client = build_client()
    db = db_of(client)
    db.add(Subcategory(id=5, restaurant_id=1, category_id=1, name="Classic", position=1))
    db.get(MenuItem, 1).image_url = "https://cdn.test/restaurants/1/menu-images/a.png"
    db.get(MenuItem, 2).image_url = "https://cdn.test/restaurants/1/menu-images/b.png"
    db.commit()

    deleted_urls = []

    def fake_delete(url, restaurant_id):
        deleted_urls.append(url)
        if url.endswith("b.png"):
            raise RuntimeError("storage unavailable")
        return True

    monkeypatch.setattr(storage, "delete_image", fake_delete)

    response = client.delete("/api/menu/categories/1/cascade", headers=auth_headers(client, PIZZA_MANAGER))

    assert response.status_code == 200
    assert response.json()["deleted"] == {"menu_items": 2, "subcategories": 1, "images": 1, "images_failed": 1}
    assert len(deleted_urls) == 2
    assert db.query(MenuItem).filter(MenuItem.restaurant_id == 1).count() == 0
    assert db.query(Subcategory).filter(Subcategory.restaurant_id == 1).count() == 0
    assert db.get(Category, 1) is None
    assert db.get(MenuItem, 3) is not None


def test_cascade_delete_requires_manager():
    client = build_client()

    response = client.delete("/api/menu/categories/1/cascade", headers=auth_headers(client, PIZZA_STAFF))

    assert response.status_code == 403


def test_categories_endpoint_groups_subcategories_and_uncategorized():
    client = build_client()
    db = db_of(client)
    db.add(Subcategory(id=6, restaurant_id=1, category_id=1, name="Classic", position=1))
    db.add(MenuItem(restaurant_id=1, category_id=None, name="Garlic bread", price=Decimal("4.00"), is_active=True))
    db.commit()

    response = client.get("/api/menu/categories", headers=PIZZA_HEADERS)

    assert response.status_code == 200
    names = [category["name"] for category in response.json()]
    assert names[0] == "Pizzas"
    assert "Uncategorized" in names
    assert [sub["name"] for sub in response.json()[0]["subcategories"]] == ["Classic"]


def test_category_update_rejects_null_for_required_fields():
    client = build_client()
    db = db_of(client)
    original_name = db.get(Category, 1).name

    response = client.put(
        "/api/menu/categories/1",
        json={"name": None, "is_active": None},
        headers=auth_headers(client, PIZZA_STAFF),
    )
    follow_up = client.put(
        "/api/menu/categories/1",
        json={"description": "Wood fired"},
        headers=auth_headers(client, PIZZA_STAFF),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"
    assert follow_up.status_code == 200
    assert db.get(Category, 1).name == original_name
