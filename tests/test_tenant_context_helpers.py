from types import SimpleNamespace

from starlette.requests import Request

from app.core.request_context import clear_request_context, get_restaurant_id
from app.services.tenant_context import (
    add_restaurant_filter,
    attach_restaurant_context,
    get_current_restaurant_id,
    get_restaurant_context,
)


def _build_request(path: str = "/") -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "query_string": b"",
        "headers": [],
    }
    return Request(scope)


def test_add_restaurant_filter_introduces_where_clause():
    filtered = add_restaurant_filter("SELECT COUNT(*) FROM orders", None, 7)

    assert filtered.text == "SELECT COUNT(*) FROM orders WHERE restaurant_id = :restaurant_id"
    assert filtered.values == {"restaurant_id": 7}


def test_add_restaurant_filter_extends_existing_where_clause():
    filtered = add_restaurant_filter("SELECT * FROM orders where status = :status", {"status": "pending"}, 3)

    assert filtered.text.endswith("where status = :status AND restaurant_id = :restaurant_id")
    assert filtered.values == {"status": "pending", "restaurant_id": 3}


def test_add_restaurant_filter_does_not_mutate_caller_params():
    params = {"status": "ready"}

    add_restaurant_filter("SELECT 1 FROM orders WHERE status = :status", params, 1)

    assert params == {"status": "ready"}


def test_attach_restaurant_context_populates_request_state():
    request = _build_request()
    restaurant = SimpleNamespace(id=4, slug="tacos")

    context = attach_restaurant_context(request, restaurant)

    assert get_restaurant_context(request) is context
    assert request.state.restaurant_id == 4
    assert request.state.restaurant_slug == "tacos"
    assert get_restaurant_id() == "4"
    clear_request_context()


def test_get_current_restaurant_id_from_state():
    request = _build_request()
    request.state.restaurant_id = "12"

    assert get_current_restaurant_id(request) == 12


def test_get_current_restaurant_id_without_context():
    assert get_current_restaurant_id(_build_request()) is None
