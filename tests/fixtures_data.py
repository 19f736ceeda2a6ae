"""Shared seed data and app builders for backend test scenarios."""

from decimal import Decimal

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.core.errors import register_exception_handlers
from app.models.category import Category
from app.models.menu_item import MenuItem
from app.models.restaurant import Restaurant
from app.models.user import User
from app.routers.auth import router as auth_router
from app.routers.dashboard import router as dashboard_router
from app.routers.feedback import router as feedback_router
from app.routers.menu import router as menu_router
from app.routers.orders import router as orders_router
from app.routers.platform import router as platform_router
from app.routers.reservations import router as reservations_router
from app.routers.restaurants import router as restaurants_router
from app.routers.settings import router as settings_router
from app.routers.upload import router as upload_router
from app.services.auth import create_user_token, hash_password
from app.services.realtime import RealtimeBroadcaster

PIZZA_PALACE = {"id": 1, "name": "Pizza Palace", "slug": "pizzapalace", "domain": "pizzapalace.com"}
SUSHI_BAR = {"id": 2, "name": "Sushi Bar", "slug": "sushibar", "domain": None}
DEFAULT_RESTAURANT = {"id": 3, "name": "Default", "slug": "default", "domain": None}

PIZZA_MANAGER = {"id": 10, "restaurant_id": 1, "name": "Mario", "email": "mario@pizza.example.com", "role": "manager"}
PIZZA_STAFF = {"id": 11, "restaurant_id": 1, "name": "Luigi", "email": "luigi@pizza.example.com", "role": "staff"}
PIZZA_CUSTOMER = {"id": 12, "restaurant_id": 1, "name": "Peach", "email": "peach@pizza.example.com", "role": "customer"}
SUSHI_MANAGER = {"id": 20, "restaurant_id": 2, "name": "Kenji", "email": "kenji@sushi.example.com", "role": "manager"}

DEFAULT_PASSWORD = "secret123"

PIZZA_HEADERS = {"x-restaurant-slug": "pizzapalace"}
SUSHI_HEADERS = {"x-restaurant-slug": "sushibar"}


class RecordingBroadcaster(RealtimeBroadcaster):
    """Keeps emitted events in memory instead of pushing them to sockets."""

    def __init__(self) -> None:
        super().__init__()
        self.events = []

    def emit(self, room, event, payload):
        self.events.append((room, event, payload))

    def names(self):
        return [event for _, event, _ in self.events]


def build_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    return TestingSessionLocal()


def seed_tenants(db):
    for data in (PIZZA_PALACE, SUSHI_BAR, DEFAULT_RESTAURANT):
        db.add(Restaurant(is_active=True, **data))
    db.flush()
    password_hash = hash_password(DEFAULT_PASSWORD)
    for data in (PIZZA_MANAGER, PIZZA_STAFF, PIZZA_CUSTOMER, SUSHI_MANAGER):
        db.add(User(password_hash=password_hash, is_active=True, **data))
    db.add(Category(id=1, restaurant_id=1, name="Pizzas", position=1, is_active=True))
    db.add(Category(id=2, restaurant_id=2, name="Rolls", position=1, is_active=True))
    db.add(MenuItem(id=1, restaurant_id=1, category_id=1, name="Margherita", price=Decimal("10.00"), is_active=True))
    db.add(MenuItem(id=2, restaurant_id=1, category_id=1, name="Pepperoni", price=Decimal("12.50"), is_active=True))
    db.add(MenuItem(id=3, restaurant_id=2, category_id=2, name="California", price=Decimal("8.00"), is_active=True))
    db.commit()
    return db


def build_client(db=None, broadcaster=None) -> TestClient:
    db = db if db is not None else seed_tenants(build_session())
    app = FastAPI()
    app.state.broadcaster = broadcaster or RecordingBroadcaster()
    register_exception_handlers(app)
    for router in (
        auth_router,
        restaurants_router,
        settings_router,
        menu_router,
        orders_router,
        reservations_router,
        feedback_router,
        dashboard_router,
        upload_router,
        platform_router,
    ):
        app.include_router(router)
    app.dependency_overrides[get_db] = lambda: db
    return TestClient(app)


def db_of(client: TestClient):
    return client.app.dependency_overrides[get_db]()


def auth_headers(client: TestClient, user_data: dict, tenant_headers: dict | None = None) -> dict:
    db = db_of(client)
    user = db.get(User, user_data["id"])
    restaurant = db.get(Restaurant, user.restaurant_id)
    headers = {"Authorization": f"Bearer {create_user_token(user, restaurant)}"}
    headers.update(tenant_headers if tenant_headers is not None else {"x-restaurant-slug": restaurant.slug})
    return headers
