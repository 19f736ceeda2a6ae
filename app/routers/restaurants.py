from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import ApiError
from app.deps import get_restaurant_context, get_tenant_scope, require_restaurant_access, require_role
from app.models.restaurant_branding import RestaurantBranding
from app.models.restaurant_content import RestaurantContent
from app.models.restaurant_settings import RestaurantSettings
from app.models.user import User
from app.services.restaurant_service import (
    get_restaurant_stats,
    is_domain_available,
    is_slug_available,
    merged_settings,
    normalize_domain,
    restaurant_to_dict,
    validate_slug,
)
from app.services.tenant_context import RestaurantContext
from app.services.tenant_scope import TenantScope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/restaurants", tags=["restaurants"])

MANAGER_ACCESS = require_role("manager")

HEX_COLOR = r"^#[0-9a-fA-F]{3,8}$"
HMS_TIME = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9](:[0-5][0-9])?$"


class RestaurantDetailsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    slug: Optional[str] = Field(default=None, max_length=80)
    domain: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    logo_url: Optional[str] = None
    primary_color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    secondary_color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    phone: Optional[str] = Field(default=None, max_length=30)
    email: Optional[str] = Field(default=None, max_length=255)
    address: Optional[str] = None
    google_maps_link: Optional[str] = None
    open_time: Optional[str] = Field(default=None, pattern=HMS_TIME)
    close_time: Optional[str] = Field(default=None, pattern=HMS_TIME)
    timezone: Optional[str] = Field(default=None, max_length=64)


class BrandingUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    primary_color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    secondary_color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    accent_color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    font_family: Optional[str] = Field(default=None, max_length=80)
    logo_url: Optional[str] = None
    favicon_url: Optional[str] = None
    hero_image_url: Optional[str] = None
    custom_css: Optional[str] = None


class ContentUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(default="", max_length=200)
    content: str = ""
    meta_description: Optional[str] = Field(default=None, max_length=300)
    is_published: bool = True


BRANDING_DEFAULTS = {
    "primary_color": "#000000",
    "secondary_color": "#ffffff",
    "accent_color": "#ff6b6b",
    "font_family": "Inter",
}


def _branding_to_dict(branding: RestaurantBranding | None, context: RestaurantContext) -> dict:
    restaurant = context.restaurant
    if branding is None:
        return {
            "primary_color": restaurant.primary_color,
            "secondary_color": restaurant.secondary_color,
            "accent_color": BRANDING_DEFAULTS["accent_color"],
            "font_family": BRANDING_DEFAULTS["font_family"],
            "logo_url": restaurant.logo_url,
            "favicon_url": None,
            "hero_image_url": None,
            "custom_css": None,
        }
    return {
        "primary_color": branding.primary_color,
        "secondary_color": branding.secondary_color,
        "accent_color": branding.accent_color,
        "font_family": branding.font_family,
        "logo_url": branding.logo_url or restaurant.logo_url,
        "favicon_url": branding.favicon_url,
        "hero_image_url": branding.hero_image_url,
        "custom_css": branding.custom_css,
    }


def _content_to_dict(page: RestaurantContent) -> dict:
    return {
        "id": page.id,
        "restaurant_id": page.restaurant_id,
        "page_type": page.page_type,
        "title": page.title,
        "content": page.content,
        "meta_description": page.meta_description,
        "is_published": page.is_published,
        "updated_at": page.updated_at.isoformat() if page.updated_at else None,
    }


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


@router.get("/public/info")
def public_info(context: RestaurantContext = Depends(get_restaurant_context)):
    restaurant = context.restaurant
    return {
        "id": restaurant.id,
        "name": restaurant.name,
        "slug": restaurant.slug,
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
    }


@router.get("/public/branding")
def public_branding(
    context: RestaurantContext = Depends(get_restaurant_context),
    scope: TenantScope = Depends(get_tenant_scope),
):
    return _branding_to_dict(scope.query(RestaurantBranding).first(), context)


@router.get("/public/content/{page_type}")
def public_content(page_type: str, scope: TenantScope = Depends(get_tenant_scope)):
    page = (
        scope.query(RestaurantContent)
        .filter(RestaurantContent.page_type == page_type, RestaurantContent.is_published.is_(True))
        .first()
    )
    if page is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Content not found")
    return _content_to_dict(page)


@router.get("/public/settings")
def public_settings(
    context: RestaurantContext = Depends(get_restaurant_context),
    scope: TenantScope = Depends(get_tenant_scope),
):
    return merged_settings(context.restaurant, scope.query(RestaurantSettings).first())


# ---------------------------------------------------------------------------
# Availability checks, no tenant needed
# ---------------------------------------------------------------------------


@router.get("/check-slug/{slug}")
def check_slug(slug: str, exclude_id: Optional[int] = None, db: Session = Depends(get_db)):
    return {"available": is_slug_available(db, validate_slug(slug), exclude_id=exclude_id)}


@router.get("/check-domain/{domain}")
def check_domain(domain: str, exclude_id: Optional[int] = None, db: Session = Depends(get_db)):
    return {"available": is_domain_available(db, normalize_domain(domain) or "", exclude_id=exclude_id)}


# ---------------------------------------------------------------------------
# Authenticated
# ---------------------------------------------------------------------------


@router.get("/details")
def get_details(
    _user: User = Depends(require_restaurant_access),
    context: RestaurantContext = Depends(get_restaurant_context),
):
    return restaurant_to_dict(context.restaurant)


@router.get("/stats")
def get_stats(
    _user: User = Depends(require_role("staff")),
    scope: TenantScope = Depends(get_tenant_scope),
):
    return get_restaurant_stats(scope)


@router.put("/details")
def update_details(
    payload: RestaurantDetailsUpdate,
    _user: User = Depends(MANAGER_ACCESS),
    context: RestaurantContext = Depends(get_restaurant_context),
    db: Session = Depends(get_db),
):
    changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
    if not changes:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "No fields to update")

    restaurant_id = context.restaurant_id
    if "slug" in changes:
        changes["slug"] = validate_slug(changes["slug"])
        if not is_slug_available(db, changes["slug"], exclude_id=restaurant_id):
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Slug is already taken")
    if "domain" in changes:
        changes["domain"] = normalize_domain(changes["domain"])
        if changes["domain"] and not is_domain_available(db, changes["domain"], exclude_id=restaurant_id):
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Domain is already taken")

    restaurant = db.merge(context.restaurant)
    for column, value in changes.items():
        setattr(restaurant, column, value)
    db.commit()
    db.refresh(restaurant)
    logger.info("Restaurant details updated id=%s fields=%s", restaurant.id, sorted(changes))
    return restaurant_to_dict(restaurant)


@router.put("/branding")
def update_branding(
    payload: BrandingUpdate,
    _user: User = Depends(MANAGER_ACCESS),
    context: RestaurantContext = Depends(get_restaurant_context),
    scope: TenantScope = Depends(get_tenant_scope),
):
    changes = payload.model_dump(exclude_unset=True)
    for column, default in BRANDING_DEFAULTS.items():
        if column in changes and not changes[column]:
            changes[column] = default

    try:
        branding = scope.query(RestaurantBranding).first()
        if branding is None:
            branding = scope.add(RestaurantBranding, **{**BRANDING_DEFAULTS, **changes})
        else:
            scope.apply(branding, changes)
        scope.db.commit()
    except Exception:
        scope.db.rollback()
        raise

    scope.db.refresh(branding)
    logger.info("Branding updated restaurant_id=%s", scope.restaurant_id)
    return _branding_to_dict(branding, context)


@router.put("/content/{page_type}")
def update_content(
    page_type: str,
    payload: ContentUpdate,
    _user: User = Depends(MANAGER_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    page_type = page_type.strip().lower()
    if not page_type:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Validation failed", "page_type is required")

    values = payload.model_dump()
    try:
        page = scope.query(RestaurantContent).filter(RestaurantContent.page_type == page_type).first()
        if page is None:
            page = scope.add(RestaurantContent, page_type=page_type, **values)
        else:
            scope.apply(page, values)
        scope.db.commit()
    except Exception:
        scope.db.rollback()
        raise

    scope.db.refresh(page)
    logger.info("Content page saved restaurant_id=%s page_type=%s", scope.restaurant_id, page_type)
    return _content_to_dict(page)
