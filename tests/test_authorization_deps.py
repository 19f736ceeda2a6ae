from types import SimpleNamespace

import pytest
from starlette.requests import Request

from app.core.errors import ApiError
from app.services.authorization_service import AuthorizationService
from app.services.tenant_context import RestaurantContext
from tests.fixtures_data import (
    PIZZA_CUSTOMER,
    PIZZA_HEADERS,
    PIZZA_MANAGER,
    PIZZA_STAFF,
    SUSHI_MANAGER,
    auth_headers,
    build_client,
    build_session,
    seed_tenants,
)


def _build_request(path: str = "/api/resource", method: str = "GET") -> Request:
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [],
        "path_params": {},
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
        "scheme": "http",
    }
    return Request(scope)


def _context(restaurant_id: int) -> RestaurantContext:
    return RestaurantContext(
        restaurant_id=restaurant_id,
        restaurant_slug=f"r{restaurant_id}",
        restaurant=SimpleNamespace(id=restaurant_id),
    )


def test_role_hierarchy_levels():
    assert AuthorizationService.role_level("admin") > AuthorizationService.role_level("owner")
    assert AuthorizationService.role_level("Owner") > AuthorizationService.role_level("manager")
    assert AuthorizationService.role_level("manager") > AuthorizationService.role_level("staff")
    assert AuthorizationService.role_level("unknown") == 0


def test_missing_context_is_rejected():
    db = seed_tenants(build_session())

    with pytest.raises(ApiError) as exc:
        AuthorizationService.validate_restaurant_access(
            db=db,
            request=_build_request(),
            user=SimpleNamespace(id=10),
            context=None,
        )

    assert exc.value.status_code == 400
    assert exc.value.error == "Missing restaurant context"


def test_public_paths_skip_validation():
    db = seed_tenants(build_session())

    AuthorizationService.validate_restaurant_access(
        db=db,
        request=_build_request(path="/api/auth/validate"),
        user=SimpleNamespace(id=20),
        context=None,
    )


def test_user_of_another_restaurant_is_denied():
    db = seed_tenants(build_session())

    with pytest.raises(ApiError) as exc:
        AuthorizationService.validate_restaurant_access(
            db=db,
            request=_build_request(),
            user=SimpleNamespace(id=SUSHI_MANAGER["id"], role="manager", restaurant_id=2),
            context=_context(1),
        )

    assert exc.value.status_code == 403
    assert exc.value.error == "Access denied"


def test_ensure_min_role_denies_lower_role():
    with pytest.raises(ApiError) as exc:
        AuthorizationService.ensure_min_role(
            request=_build_request(),
            user=SimpleNamespace(id=11, role="staff", restaurant_id=1),
            restaurant_id=1,
            min_role="manager",
        )

    assert exc.value.status_code == 403
    assert exc.value.error == "Insufficient permissions"


def test_protected_route_requires_token():
    client = build_client()

    response = client.get("/api/orders", headers=PIZZA_HEADERS)

    assert response.status_code == 401
    assert response.json()["error"] == "Access denied"


def test_malformed_token_is_rejected():
    client = build_client()

    response = client.get("/api/orders", headers={**PIZZA_HEADERS, "Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token"


def test_token_from_other_restaurant_is_forbidden():
    client = build_client()

    response = client.get("/api/orders", headers=auth_headers(client, SUSHI_MANAGER, PIZZA_HEADERS))

    assert response.status_code == 403


def test_staff_can_list_orders_but_not_delete_feedback():
    client = build_client()
    headers = auth_headers(client, PIZZA_STAFF)

    assert client.get("/api/orders", headers=headers).status_code == 200
    assert client.delete("/api/feedbacks/1", headers=headers).status_code == 403


def test_customer_cannot_reach_staff_routes():
    client = build_client()

    response = client.get("/api/orders", headers=auth_headers(client, PIZZA_CUSTOMER))

    assert response.status_code == 403
    assert response.json()["message"] == "Minimum role 'staff' required for this action"


def test_manager_passes_manager_routes():
    client = build_client()

    response = client.get("/api/dashboard/analytics", headers=auth_headers(client, PIZZA_MANAGER))

    assert response.status_code == 200
    assert response.json()["data"]["restaurantId"] == 1
