from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from fastapi import status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import ADMIN_APP_URL, API_BASE_URL, CLIENT_APP_URL
from app.core.errors import ApiError
from app.models.category import Category
from app.models.menu_item import MenuItem
from app.models.order import Order
from app.models.restaurant import Restaurant
from app.models.restaurant_branding import RestaurantBranding
from app.models.restaurant_content import RestaurantContent
from app.models.restaurant_settings import RestaurantSettings
from app.models.user import User
from app.services.tenant_scope import TenantScope
from utils.slug import normalize_slug

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,78}[a-z0-9])?$")
DOMAIN_PATTERN = re.compile(r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?)(?:\.[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?)+$")
MAX_SLUG_ATTEMPTS = 9999


@dataclass
class RestaurantSeed:
    name: str
    slug: str
    domain: str | None = None
    description: str = ""
    logo_url: str | None = None
    primary_color: str = "#000000"
    secondary_color: str = "#ffffff"
    accent_color: str = "#ff6b6b"
    font_family: str = "Inter"
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    google_maps_link: str | None = None
    open_time: str = "09:00:00"
    close_time: str = "22:00:00"
    timezone: str = "UTC"
    content_pages: list[dict[str, Any]] = field(default_factory=list)


def default_content_pages(restaurant_name: str) -> list[dict[str, Any]]:
    return [
        {
            "page_type": "about",
            "title": f"About {restaurant_name}",
            "content": (
                f"Welcome to {restaurant_name}! We are passionate about serving delicious food "
                "with excellent service."
            ),
            "meta_description": f"Learn more about {restaurant_name} and our commitment to quality food and service.",
        },
        {
            "page_type": "contact",
            "title": "Contact Us",
            "content": "Get in touch with us for reservations, catering, or any questions you may have.",
            "meta_description": "Contact information and ways to reach our restaurant for reservations and inquiries.",
        },
    ]


def normalize_domain(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized == "":
        return None
    if not DOMAIN_PATTERN.match(normalized):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid domain", f"'{value}' is not a valid domain")
    return normalized


def validate_slug(value: str) -> str:
    slug = (value or "").strip().lower()
    if not SLUG_PATTERN.match(slug):
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "Invalid slug",
            "Slug must contain only lowercase letters, numbers and hyphens",
        )
    return slug


def is_slug_available(db: Session, slug: str, exclude_id: int | None = None) -> bool:
    query = db.query(Restaurant.id).filter(Restaurant.slug == slug)
    if exclude_id is not None:
        query = query.filter(Restaurant.id != exclude_id)
    return query.first() is None


def is_domain_available(db: Session, domain: str, exclude_id: int | None = None) -> bool:
    query = db.query(Restaurant.id).filter(func.lower(Restaurant.domain) == domain.lower())
    if exclude_id is not None:
        query = query.filter(Restaurant.id != exclude_id)
    return query.first() is None


def generate_unique_slug(db: Session, base: str) -> str:
    candidate = normalize_slug(base) or "restaurant"
    if is_slug_available(db, candidate):
        return candidate

    counter = 1
    while counter <= MAX_SLUG_ATTEMPTS:
        with_suffix = f"{candidate}{counter}"
        if is_slug_available(db, with_suffix):
            return with_suffix
        counter += 1

    raise ApiError(status.HTTP_409_CONFLICT, "Slug unavailable", "Could not generate a unique slug")


def create_restaurant(db: Session, seed: RestaurantSeed) -> Restaurant:
    """Insert a restaurant with its settings, branding and content pages.

    Only flushes; the caller owns the transaction.
    """
    restaurant = Restaurant(
        name=seed.name,
        slug=seed.slug,
        domain=seed.domain,
        description=seed.description,
        logo_url=seed.logo_url,
        primary_color=seed.primary_color,
        secondary_color=seed.secondary_color,
        phone=seed.phone,
        email=seed.email,
        address=seed.address,
        google_maps_link=seed.google_maps_link,
        open_time=seed.open_time,
        close_time=seed.close_time,
        timezone=seed.timezone,
        is_active=True,
    )
    db.add(restaurant)
    db.flush()

    scope = TenantScope(db, restaurant.id)
    scope.add(RestaurantSettings, custom_social_media=[])
    scope.add(
        RestaurantBranding,
        primary_color=seed.primary_color,
        secondary_color=seed.secondary_color,
        accent_color=seed.accent_color,
        font_family=seed.font_family,
        logo_url=seed.logo_url,
    )
    for page in seed.content_pages or default_content_pages(seed.name):
        scope.add(
            RestaurantContent,
            page_type=page["page_type"],
            title=page["title"],
            content=page.get("content", ""),
            meta_description=page.get("meta_description"),
            is_published=page.get("is_published", True),
        )
    db.flush()

    logger.info("Restaurant created id=%s slug=%s", restaurant.id, restaurant.slug)
    return restaurant


def build_restaurant_urls(restaurant: Restaurant) -> dict[str, str]:
    website = f"{CLIENT_APP_URL}?restaurant={restaurant.slug}"
    return {
        "website": website,
        "table_qr": f"{website}&table=1",
        "admin": f"{ADMIN_APP_URL}/login?restaurant={restaurant.slug}",
        "api": f"{API_BASE_URL}/restaurants/{restaurant.id}",
    }


def get_restaurant_stats(scope: TenantScope) -> dict[str, int]:
    orders = scope.query(Order)
    return {
        "total_users": scope.query(User).count(),
        "active_menu_items": scope.query(MenuItem).filter(MenuItem.is_active.is_(True)).count(),
        "total_categories": scope.query(Category).filter(Category.is_active.is_(True)).count(),
        "total_orders": orders.count(),
        "pending_orders": orders.filter(Order.status == "pending").count(),
        "completed_orders": scope.query(Order).filter(Order.status == "delivered").count(),
    }


def restaurant_to_dict(restaurant: Restaurant) -> dict[str, Any]:
    return {
        "id": restaurant.id,
        "name": restaurant.name,
        "slug": restaurant.slug,
        "domain": restaurant.domain,
        "description": restaurant.description,
        "logo_url": restaurant.logo_url,
        "primary_color": restaurant.primary_color,
        "secondary_color": restaurant.secondary_color,
        "phone": restaurant.phone,
        "email": restaurant.email,
        "address": restaurant.address,
        "google_maps_link": restaurant.google_maps_link,
        "open_time": restaurant.open_time,
        "close_time": restaurant.close_time,
        "timezone": restaurant.timezone,
        "is_active": restaurant.is_active,
        "created_at": restaurant.created_at.isoformat() if restaurant.created_at else None,
    }


def get_or_create_settings(scope: TenantScope) -> RestaurantSettings:
    settings = scope.query(RestaurantSettings).first()
    if settings is None:
        settings = scope.add(RestaurantSettings, custom_social_media=[])
        scope.db.flush()
    return settings


def merged_settings(restaurant: Restaurant, settings: RestaurantSettings | None) -> dict[str, Any]:
    """Public settings view: restaurant info plus its settings row."""
    return {
        "restaurant_name": restaurant.name,
        "description": restaurant.description or "",
        "google_maps_link": restaurant.google_maps_link or "",
        "phone": restaurant.phone or "",
        "email": restaurant.email or "",
        "open_time": restaurant.open_time,
        "close_time": restaurant.close_time,
        "wifi_name": (settings.wifi_name if settings else None) or "",
        "wifi_password": (settings.wifi_password if settings else None) or "",
        "instagram": (settings.instagram if settings else None) or "",
        "facebook": (settings.facebook if settings else None) or "",
        "trip_advisor": (settings.trip_advisor if settings else None) or "",
        "whatsapp": (settings.whatsapp if settings else None) or "",
        "telegram": (settings.telegram if settings else None) or "",
        "custom_social_media": list(settings.custom_social_media or []) if settings else [],
    }
