import pytest

from app.models.restaurant import Restaurant
from app.models.restaurant_branding import RestaurantBranding
from app.models.restaurant_content import RestaurantContent
from app.models.restaurant_settings import RestaurantSettings
from app.routers import platform
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

PLATFORM_TOKEN = "platform-secret"


class FakeDns:
    def __init__(self):
        self.created = []

    def create_subdomain(self, subdomain):
        self.created.append(subdomain)
        return {"success": True, "subdomain": f"{subdomain}.example.com", "message": "Subdomain created successfully"}


class FakeMailer:
    def __init__(self, ok=True):
        self.ok = ok
        self.welcomes = []

    def send_restaurant_welcome(self, email, restaurant, urls):
        self.welcomes.append((email, restaurant.slug, urls["website"]))
        return {"success": self.ok}

    def send_admin_notification(self, restaurant, urls):
        return {"success": False, "message": "ADMIN_EMAIL not configured"}


@pytest.fixture()
def platform_client(monkeypatch):
    monkeypatch.setattr(platform, "PLATFORM_ADMIN_TOKEN", PLATFORM_TOKEN)
    client = build_client()
    dns, mailer = FakeDns(), FakeMailer()
    client.app.dependency_overrides[platform.get_dns_service] = lambda: dns
    client.app.dependency_overrides[platform.get_email_service] = lambda: mailer
    return client, dns, mailer


def test_platform_creation_provisions_everything(platform_client):
    client, dns, mailer = platform_client

    response = client.post(
        "/api/admin/restaurants/create",
        json={"name": "Taco Town", "slug": "TacoTown", "domain": "TacoTown.com", "owner_email": "owner@example.com"},
        headers={"x-platform-token": PLATFORM_TOKEN},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["restaurant"]["slug"] == "tacotown"
    assert body["restaurant"]["domain"] == "tacotown.com"
    assert body["urls"]["website"].endswith("?restaurant=tacotown")
    assert body["email"] == {"welcome": "Sent", "admin": "Not sent"}
    assert dns.created == ["tacotown"]
    assert mailer.welcomes[0][0] == "owner@example.com"

    db = db_of(client)
    restaurant_id = body["restaurant"]["id"]
    assert db.query(RestaurantSettings).filter(RestaurantSettings.restaurant_id == restaurant_id).count() == 1
    assert db.query(RestaurantBranding).filter(RestaurantBranding.restaurant_id == restaurant_id).count() == 1
    pages = {p.page_type for p in db.query(RestaurantContent).filter(RestaurantContent.restaurant_id == restaurant_id)}
    assert pages == {"about", "contact"}


def test_platform_creation_without_owner_email(platform_client):
    client, _, mailer = platform_client

    response = client.post(
        "/api/admin/restaurants/create",
        json={"name": "Noodle Nook", "slug": "noodles"},
        headers={"x-platform-token": PLATFORM_TOKEN},
    )

    assert response.json()["email"]["welcome"] == "No owner email provided"
    assert mailer.welcomes == []


def test_platform_creation_rejects_taken_slug_and_domain(platform_client):
    client, _, _ = platform_client
    headers = {"x-platform-token": PLATFORM_TOKEN}

    slug = client.post("/api/admin/restaurants/create", json={"name": "Copy", "slug": "pizzapalace"}, headers=headers)
    domain = client.post(
        "/api/admin/restaurants/create",
        json={"name": "Copy", "slug": "copycat", "domain": "PizzaPalace.com"},
        headers=headers,
    )
    invalid = client.post("/api/admin/restaurants/create", json={"name": "Bad", "slug": "Bad Slug!"}, headers=headers)

    assert slug.json()["error"] == "Slug already taken"
    assert domain.json()["error"] == "Domain already taken"
    assert invalid.status_code == 400
    assert db_of(client).query(Restaurant).count() == 3


def test_platform_token_is_required(platform_client):
    client, dns, _ = platform_client

    missing = client.post("/api/admin/restaurants/create", json={"name": "X", "slug": "xx"})
    wrong = client.post(
        "/api/admin/restaurants/create",
        json={"name": "X", "slug": "xx"},
        headers={"x-platform-token": "guess"},
    )

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert dns.created == []


def test_platform_disabled_without_configured_token(monkeypatch):
    monkeypatch.setattr(platform, "PLATFORM_ADMIN_TOKEN", "")
    client = build_client()

    response = client.post(
        "/api/admin/restaurants/create",
        json={"name": "X", "slug": "xx"},
        headers={"x-platform-token": "anything"},
    )

    assert response.status_code == 503


def test_public_info_branding_and_content():
    client = build_client()

    info = client.get("/api/restaurants/public/info", headers=PIZZA_HEADERS)
    branding = client.get("/api/restaurants/public/branding", headers=PIZZA_HEADERS)
    missing = client.get("/api/restaurants/public/content/about", headers=PIZZA_HEADERS)

    assert info.json()["slug"] == "pizzapalace"
    assert branding.json()["accent_color"] == "#ff6b6b"
    assert missing.status_code == 404
    assert missing.json()["error"] == "Content not found"


def test_manager_publishes_content_for_own_restaurant_only():
    client = build_client()

    saved = client.put(
        "/api/restaurants/content/About",
        json={"title": "Our story", "content": "Since 1985"},
        headers=auth_headers(client, PIZZA_MANAGER),
    )
    pizza = client.get("/api/restaurants/public/content/about", headers=PIZZA_HEADERS)
    sushi = client.get("/api/restaurants/public/content/about", headers=SUSHI_HEADERS)

    assert saved.status_code == 200
    assert pizza.json()["title"] == "Our story"
    assert sushi.status_code == 404


def test_branding_upsert_fills_defaults():
    client = build_client()

    response = client.put(
        "/api/restaurants/branding",
        json={"primary_color": "#112233", "font_family": ""},
        headers=auth_headers(client, PIZZA_MANAGER),
    )

    assert response.status_code == 200
    assert response.json()["primary_color"] == "#112233"
    assert response.json()["font_family"] == "Inter"


def test_check_slug_and_domain_availability():
    client = build_client()

    assert client.get("/api/restaurants/check-slug/pizzapalace").json() == {"available": False}
    assert client.get("/api/restaurants/check-slug/pizzapalace?exclude_id=1").json() == {"available": True}
    assert client.get("/api/restaurants/check-slug/newplace").json() == {"available": True}
    assert client.get("/api/restaurants/check-domain/PIZZAPALACE.com").json() == {"available": False}


def test_details_update_rejects_taken_slug_but_allows_own():
    client = build_client()
    headers = auth_headers(client, PIZZA_MANAGER)

    taken = client.put("/api/restaurants/details", json={"slug": "sushibar"}, headers=headers)
    own = client.put("/api/restaurants/details", json={"slug": "pizzapalace", "phone": "555-0100"}, headers=headers)
    empty = client.put("/api/restaurants/details", json={}, headers=headers)

    assert taken.status_code == 400
    assert taken.json()["error"] == "Slug is already taken"
    assert own.status_code == 200
    assert own.json()["phone"] == "555-0100"
    assert empty.json()["error"] == "No fields to update"


def test_staff_cannot_update_details():
    client = build_client()

    response = client.put("/api/restaurants/details", json={"name": "Mine"}, headers=auth_headers(client, PIZZA_STAFF))

    assert response.status_code == 403


def test_deleting_another_restaurants_image_is_forbidden(monkeypatch):
    client = build_client()
    calls = []
    monkeypatch.setattr(storage, "delete_image", lambda key, restaurant_id: calls.append(key))

    foreign = client.delete(
        "/api/upload/image/restaurants/2/menu-images/abc.png",
        headers=auth_headers(client, PIZZA_STAFF),
    )
    own = client.delete(
        "/api/upload/image/restaurants/1/menu-images/abc.png",
        headers=auth_headers(client, PIZZA_STAFF),
    )

    assert foreign.status_code == 403
    assert own.status_code == 200
    assert calls == ["restaurants/1/menu-images/abc.png"]


def test_upload_without_storage_configuration(monkeypatch):
    monkeypatch.setattr(storage, "STORAGE_BUCKET_NAME", "")
    client = build_client()

    response = client.post(
        "/api/upload/image",
        files={"image": ("dish.png", b"\x89PNG", "image/png")},
        headers=auth_headers(client, PIZZA_STAFF),
    )

    assert response.status_code == 503
    assert response.json()["error"] == "Storage not configured"
