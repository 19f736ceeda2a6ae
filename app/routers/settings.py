from __future__ import annotations

import logging
import re
from typing import Any, List, Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.deps import get_restaurant_context, get_tenant_scope, require_role
from app.models.restaurant_settings import RestaurantSettings
from app.models.user import User
from app.services.restaurant_service import get_or_create_settings, merged_settings
from app.services.tenant_context import RestaurantContext
from app.services.tenant_scope import TenantScope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9](:[0-5][0-9])?$")

URL_FIELDS = ("googleMapsLink", "instagram", "facebook", "tripAdvisor", "whatsapp", "telegram")


def is_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def to_hms(value: str) -> str:
    parts = [int(p) for p in value.split(":")]
    if len(parts) == 2:
        parts.append(0)
    return "{:02d}:{:02d}:{:02d}".format(*parts)


class CustomSocialLink(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    url: str
    icon: Optional[str] = None

    @field_validator("url")
    @classmethod
    def _valid_url(cls, value: str) -> str:
        value = value.strip()
        if not is_url(value):
            raise ValueError("Invalid URL")
        return value


class SettingsPayload(BaseModel):
    """Camel-cased settings form sent by the admin panel. Empty strings clear a field."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    restaurantName: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    googleMapsLink: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=20)
    email: Optional[str] = None
    openTime: Optional[str] = None
    closeTime: Optional[str] = None
    wifiName: Optional[str] = Field(default=None, max_length=50)
    wifiPassword: Optional[str] = Field(default=None, max_length=50)
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    tripAdvisor: Optional[str] = None
    whatsapp: Optional[str] = None
    telegram: Optional[str] = None
    customSocialMedia: Optional[List[CustomSocialLink]] = None

    @field_validator(*URL_FIELDS)
    @classmethod
    def _urls(cls, value: Optional[str], info) -> Optional[str]:
        if value and not is_url(value):
            raise ValueError(f"Invalid {info.field_name} URL")
        return value

    @field_validator("email")
    @classmethod
    def _email(cls, value: Optional[str]) -> Optional[str]:
        if value and not EMAIL_RE.match(value):
            raise ValueError("Invalid email format")
        return value

    @field_validator("openTime", "closeTime")
    @classmethod
    def _times(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        if not TIME_RE.match(value):
            raise ValueError("Invalid time format. Use HH:MM or HH:MM:SS")
        return to_hms(value)


RESTAURANT_FIELDS = {
    "restaurantName": "name",
    "description": "description",
    "googleMapsLink": "google_maps_link",
    "phone": "phone",
    "email": "email",
    "openTime": "open_time",
    "closeTime": "close_time",
}

SETTINGS_FIELDS = {
    "wifiName": "wifi_name",
    "wifiPassword": "wifi_password",
    "instagram": "instagram",
    "facebook": "facebook",
    "tripAdvisor": "trip_advisor",
    "whatsapp": "whatsapp",
    "telegram": "telegram",
}


def _split_changes(payload: SettingsPayload) -> tuple[dict[str, Any], dict[str, Any]]:
    data = payload.model_dump(exclude_unset=True)
    restaurant_changes = {
        column: data[key] for key, column in RESTAURANT_FIELDS.items() if key in data and data[key] is not None
    }
    settings_changes = {column: data[key] or None for key, column in SETTINGS_FIELDS.items() if key in data}
    if "customSocialMedia" in data:
        settings_changes["custom_social_media"] = data["customSocialMedia"] or []
    return restaurant_changes, settings_changes


@router.get("")
def get_settings(
    context: RestaurantContext = Depends(get_restaurant_context),
    scope: TenantScope = Depends(get_tenant_scope),
):
    settings = scope.query(RestaurantSettings).first()
    return merged_settings(context.restaurant, settings)


@router.post("")
def save_settings(
    payload: SettingsPayload,
    _user: User = Depends(require_role("manager")),
    context: RestaurantContext = Depends(get_restaurant_context),
    scope: TenantScope = Depends(get_tenant_scope),
):
    restaurant_changes, settings_changes = _split_changes(payload)
    restaurant = scope.db.merge(context.restaurant)

    try:
        for column, value in restaurant_changes.items():
            setattr(restaurant, column, value)
        settings = get_or_create_settings(scope)
        scope.apply(settings, settings_changes)
        scope.db.commit()
    except Exception:
        scope.db.rollback()
        raise

    scope.db.refresh(restaurant)
    scope.db.refresh(settings)
    logger.info(
        "Settings saved restaurant_id=%s fields=%s",
        scope.restaurant_id,
        sorted(list(restaurant_changes) + list(settings_changes)),
    )
    return {"message": "Settings saved successfully", "settings": merged_settings(restaurant, settings)}
