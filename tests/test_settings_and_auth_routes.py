from app.models.restaurant import Restaurant
from app.models.restaurant_settings import RestaurantSettings
from app.models.user import User
from tests.fixtures_data import (
    DEFAULT_PASSWORD,
    PIZZA_HEADERS,
    PIZZA_MANAGER,
    PIZZA_STAFF,
    auth_headers,
    build_client,
    db_of,
)


def test_settings_defaults_are_merged_with_restaurant_info():
    client = build_client()

    response = client.get("/api/settings", headers=PIZZA_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["restaurant_name"] == "Pizza Palace"
    assert body["wifi_name"] == ""
    assert body["custom_social_media"] == []


def test_manager_saves_only_provided_fields():
    client = build_client()
    headers = auth_headers(client, PIZZA_MANAGER)

    first = client.post(
        "/api/settings",
        json={"wifiName": "PizzaGuest", "instagram": "https://instagram.com/pizza", "openTime": "8:30"},
        headers=headers,
    )
    second = client.post("/api/settings", json={"wifiPassword": "margherita"}, headers=headers)

    assert first.status_code == 200
    assert first.json()["settings"]["open_time"] == "08:30:00"
    assert second.status_code == 200
    settings = second.json()["settings"]
    assert settings["wifi_name"] == "PizzaGuest"
    assert settings["wifi_password"] == "margherita"
    assert settings["instagram"] == "https://instagram.com/pizza"

    db = db_of(client)
    assert db.query(RestaurantSettings).filter(RestaurantSettings.restaurant_id == 1).count() == 1
    assert db.query(RestaurantSettings).filter(RestaurantSettings.restaurant_id == 2).count() == 0


def test_settings_validation_errors():
    client = build_client()
    headers = auth_headers(client, PIZZA_MANAGER)

    bad_email = client.post("/api/settings", json={"email": "not-an-email"}, headers=headers)
    bad_time = client.post("/api/settings", json={"closeTime": "25:00"}, headers=headers)
    bad_url = client.post("/api/settings", json={"facebook": "facebook"}, headers=headers)

    assert bad_email.status_code == 400
    assert bad_email.json()["error"] == "Validation failed"
    assert bad_time.status_code == 400
    assert bad_url.status_code == 400


def test_staff_cannot_save_settings():
    client = build_client()

    response = client.post("/api/settings", json={"wifiName": "x"}, headers=auth_headers(client, PIZZA_STAFF))

    assert response.status_code == 403


def test_customer_registration_joins_default_restaurant():
    client = build_client()

    response = client.post(
        "/api/auth/register",
        json={"name": "Daisy", "email": "Daisy@Example.com", "password": "hunter22"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["token"]
    assert body["user"]["email"] == "daisy@example.com"
    assert body["user"]["role"] == "customer"
    assert body["user"]["restaurant_id"] == 3


def test_admin_registration_provisions_a_restaurant():
    client = build_client()

    response = client.post(
        "/api/auth/register",
        json={
            "name": "Toad",
            "email": "toad@kart.example.com",
            "password": "hunter22",
            "role": "admin",
            "restaurantName": "Pizza Palace",
            "restaurantSlug": "pizzapalace",
        },
    )

    assert response.status_code == 201
    user = response.json()["user"]
    assert user["restaurant_slug"] == "pizzapalace1"
    restaurant = db_of(client).get(Restaurant, user["restaurant_id"])
    assert restaurant.name == "Pizza Palace"
    assert db_of(client).query(RestaurantSettings).filter(RestaurantSettings.restaurant_id == restaurant.id).count() == 1


def test_duplicate_registration_is_rejected():
    client = build_client()

    response = client.post(
        "/api/auth/register",
        json={"name": "Mario", "email": PIZZA_MANAGER["email"], "password": "hunter22"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "User already exists"


def test_login_and_validate():
    client = build_client()

    login = client.post("/api/auth/login", json={"email": PIZZA_STAFF["email"], "password": DEFAULT_PASSWORD})
    token = login.json()["token"]
    validate = client.get("/api/auth/validate", headers={"Authorization": f"Bearer {token}"})

    assert login.status_code == 200
    assert validate.status_code == 200
    assert validate.json()["user"]["id"] == PIZZA_STAFF["id"]
    assert validate.json()["user"]["restaurant_slug"] == "pizzapalace"


def test_login_with_wrong_password_or_inactive_user():
    client = build_client()
    db = db_of(client)
    db.get(User, PIZZA_MANAGER["id"]).is_active = False
    db.commit()

    wrong = client.post("/api/auth/login", json={"email": PIZZA_STAFF["email"], "password": "nope"})
    inactive = client.post("/api/auth/login", json={"email": PIZZA_MANAGER["email"], "password": DEFAULT_PASSWORD})

    assert wrong.status_code == 400
    assert wrong.json()["error"] == "Invalid credentials"
    assert inactive.status_code == 400


def _register_admin(client):
    registered = client.post(
        "/api/auth/register",
        json={"name": "Toad", "email": "toad@kart.example.com", "password": "hunter22", "role": "admin"},
    ).json()
    return registered, {
        "Authorization": f"Bearer {registered['token']}",
        "x-restaurant-slug": registered["user"]["restaurant_slug"],
    }


def test_admin_manages_only_users_of_own_restaurant():
    client = build_client()
    registered, headers = _register_admin(client)

    listed = client.get("/api/auth/users", headers=headers)
    foreign = client.put(f"/api/auth/users/{PIZZA_STAFF['id']}", json={"name": "Hacked"}, headers=headers)
    self_delete = client.delete(f"/api/auth/users/{registered['user']['id']}", headers=headers)
    manager = client.get("/api/auth/users", headers=auth_headers(client, PIZZA_MANAGER))

    assert [user["email"] for user in listed.json()] == ["toad@kart.example.com"]
    assert foreign.status_code == 404
    assert self_delete.status_code == 400
    assert manager.status_code == 403


def test_admin_creates_staff_in_own_restaurant():
    client = build_client()
    registered, headers = _register_admin(client)
    restaurant_id = registered["user"]["restaurant_id"]

    created = client.post(
        "/api/auth/users",
        json={
            "name": "Koopa",
            "email": "Koopa@Kart.example.com",
            "password": "shell123",
            "role": "staff",
            "restaurant_id": 1,
        },
        headers=headers,
    )
    login = client.post("/api/auth/login", json={"email": "koopa@kart.example.com", "password": "shell123"})
    staff_headers = {
        "Authorization": f"Bearer {login.json()['token']}",
        "x-restaurant-slug": registered["user"]["restaurant_slug"],
    }
    reservations = client.get("/api/reservations", headers=staff_headers)

    assert created.status_code == 201
    assert created.json()["role"] == "staff"
    assert created.json()["restaurant_id"] == restaurant_id
    assert db_of(client).query(User).filter(User.email == "koopa@kart.example.com").one().restaurant_id == restaurant_id
    assert login.status_code == 200
    assert reservations.status_code == 200


def test_user_creation_rejects_admin_role_duplicates_and_non_admins():
    client = build_client()
    _, headers = _register_admin(client)
    new_user = {"name": "Bowser", "email": "bowser@kart.example.com", "password": "castle123"}

    admin_role = client.post("/api/auth/users", json={**new_user, "role": "admin"}, headers=headers)
    duplicate = client.post(
        "/api/auth/users",
        json={**new_user, "email": PIZZA_STAFF["email"], "role": "manager"},
        headers=headers,
    )
    by_manager = client.post(
        "/api/auth/users",
        json={**new_user, "role": "staff"},
        headers=auth_headers(client, PIZZA_MANAGER),
    )

    assert admin_role.status_code == 403
    assert duplicate.status_code == 400
    assert duplicate.json()["error"] == "User already exists"
    assert by_manager.status_code == 403
    assert db_of(client).query(User).filter(User.email == "bowser@kart.example.com").count() == 0


def test_user_update_rejects_null_for_required_fields():
    client = build_client()
    _, headers = _register_admin(client)
    staff_id = client.post(
        "/api/auth/users",
        json={"name": "Koopa", "email": "koopa@kart.example.com", "password": "shell123", "role": "staff"},
        headers=headers,
    ).json()["id"]

    null_email = client.put(f"/api/auth/users/{staff_id}", json={"email": None}, headers=headers)
    null_role = client.put(f"/api/auth/users/{staff_id}", json={"role": None}, headers=headers)
    renamed = client.put(f"/api/auth/users/{staff_id}", json={"name": "Koopa Troopa"}, headers=headers)

    assert null_email.status_code == 400
    assert null_role.status_code == 400
    assert renamed.status_code == 200
    assert renamed.json()["email"] == "koopa@kart.example.com"
    assert renamed.json()["role"] == "staff"
