from fastapi.testclient import TestClient


REQUIRED_ROUTES = {
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/users",
    "/api/restaurants/public/info",
    "/api/restaurants/details",
    "/api/settings",
    "/api/menu",
    "/api/menu/categories/{category_id}/cascade",
    "/api/orders/guest",
    "/api/orders/{order_id}/status",
    "/api/reservations/public",
    "/api/feedbacks/public",
    "/api/dashboard/analytics",
    "/api/admin/restaurants/create",
    "/api/upload/image",
    "/ws",
}


def test_api_startup_and_router_registration(monkeypatch):
    from app import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        response = client.get("/")
        health_response = client.get("/health")
        docs_response = client.get("/docs")
        openapi_response = client.get("/openapi.json")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert health_response.json() == {"status": "healthy"}
    assert docs_response.status_code == 200
    assert openapi_response.status_code == 200
    assert response.headers["x-request-id"]

    paths = {route.path for route in main.app.routes}
    assert REQUIRED_ROUTES.issubset(paths)
