from decimal import Decimal

import pytest

from app.core.errors import ApiError
from app.models.category import Category
from app.models.menu_item import MenuItem
from app.models.restaurant import Restaurant
from app.services.tenant_scope import TenantScope
from tests.fixtures_data import build_session, seed_tenants


@pytest.fixture()
def db():
    session = seed_tenants(build_session())
    yield session
    session.close()


def test_scoped_queries_never_return_other_tenant_rows(db):
    pizza = TenantScope(db, 1)
    sushi = TenantScope(db, 2)

    assert {item.name for item in pizza.query(MenuItem).all()} == {"Margherita", "Pepperoni"}
    assert {item.name for item in sushi.query(MenuItem).all()} == {"California"}
    assert pizza.get(MenuItem, 3) is None


def test_get_or_404_hides_foreign_rows(db):
    with pytest.raises(ApiError) as exc:
        TenantScope(db, 2).get_or_404(MenuItem, 1, label="Menu item")

    assert exc.value.status_code == 404
    assert exc.value.error == "Menu item not found"


def test_add_overrides_caller_supplied_restaurant_id(db):
    scope = TenantScope(db, 1)

    category = scope.add(Category, name="Desserts", position=2, restaurant_id=2)
    db.commit()

    assert category.restaurant_id == 1


def test_apply_ignores_tenant_and_primary_key_changes(db):
    scope = TenantScope(db, 1)
    item = scope.get(MenuItem, 1)

    scope.apply(item, {"id": 99, "restaurant_id": 2, "price": Decimal("11.00")})
    db.commit()

    assert item.id == 1
    assert item.restaurant_id == 1
    assert item.price == Decimal("11.00")


def test_apply_and_delete_refuse_foreign_entities(db):
    foreign = db.get(MenuItem, 3)
    scope = TenantScope(db, 1)

    with pytest.raises(PermissionError):
        scope.apply(foreign, {"name": "Hijacked"})
    with pytest.raises(PermissionError):
        scope.delete(foreign)


def test_untenanted_model_is_rejected(db):
    with pytest.raises(TypeError):
        TenantScope(db, 1).query(Restaurant)


def test_scope_requires_restaurant_id(db):
    with pytest.raises(ValueError):
        TenantScope(db, None)
