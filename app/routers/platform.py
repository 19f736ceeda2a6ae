from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from app.core.config import PLATFORM_ADMIN_TOKEN
from app.core.database import get_db
from app.core.errors import ApiError
from app.services.dns_service import DnsService
from app.services.email_service import EmailService
from app.services.restaurant_service import (
    RestaurantSeed,
    build_restaurant_urls,
    create_restaurant,
    is_domain_available,
    is_slug_available,
    normalize_domain,
    restaurant_to_dict,
    validate_slug,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/restaurants", tags=["platform"])

HMS_TIME = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9](:[0-5][0-9])?$"


class RestaurantCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    slug: str = Field(..., min_length=1, max_length=80)
    domain: Optional[str] = Field(default=None, max_length=255)
    description: str = ""
    logo_url: Optional[str] = None
    primary_color: str = "#000000"
    secondary_color: str = "#ffffff"
    phone: Optional[str] = Field(default=None, max_length=30)
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    google_maps_link: Optional[str] = None
    open_time: str = Field(default="09:00:00", pattern=HMS_TIME)
    close_time: str = Field(default="22:00:00", pattern=HMS_TIME)
    timezone: str = Field(default="UTC", max_length=64)
    owner_email: Optional[EmailStr] = None
    owner_name: Optional[str] = Field(default=None, max_length=120)


def _ensure_platform_token(x_platform_token: str | None) -> None:
    configured = (PLATFORM_ADMIN_TOKEN or "").strip()
    incoming = (x_platform_token or "").strip()
    if not configured:
        raise ApiError(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Platform administration disabled",
            "PLATFORM_ADMIN_TOKEN is not configured",
        )
    if not hmac.compare_digest(incoming, configured):
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Access denied", "Invalid platform token")


def get_dns_service() -> DnsService:
    return DnsService()


def get_email_service() -> EmailService:
    return EmailService()


@router.post("/create", status_code=201)
def create_platform_restaurant(
    payload: RestaurantCreateRequest,
    x_platform_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
    dns: DnsService = Depends(get_dns_service),
    mailer: EmailService = Depends(get_email_service),
):
    _ensure_platform_token(x_platform_token)

    slug = validate_slug(payload.slug)
    if not is_slug_available(db, slug):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Slug already taken", "This restaurant slug is already in use")

    domain = normalize_domain(payload.domain)
    if domain and not is_domain_available(db, domain):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Domain already taken", "This domain is already in use")

    seed = RestaurantSeed(
        name=payload.name.strip(),
        slug=slug,
        domain=domain,
        description=payload.description,
        logo_url=payload.logo_url,
        primary_color=payload.primary_color or "#000000",
        secondary_color=payload.secondary_color or "#ffffff",
        phone=payload.phone,
        email=str(payload.email) if payload.email else None,
        address=payload.address,
        google_maps_link=payload.google_maps_link,
        open_time=payload.open_time,
        close_time=payload.close_time,
        timezone=payload.timezone or "UTC",
    )

    try:
        restaurant = create_restaurant(db, seed)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(restaurant)

    urls = build_restaurant_urls(restaurant)
    dns_result = dns.create_subdomain(slug)

    welcome_status = "No owner email provided"
    if payload.owner_email:
        welcome = mailer.send_restaurant_welcome(str(payload.owner_email), restaurant, urls)
        welcome_status = "Sent" if welcome.get("success") else "Failed"
    admin = mailer.send_admin_notification(restaurant, urls)

    logger.info(
        "Platform restaurant created id=%s slug=%s dns=%s welcome=%s",
        restaurant.id,
        restaurant.slug,
        dns_result.get("success"),
        welcome_status,
    )
    return {
        "success": True,
        "message": "Restaurant created successfully",
        "restaurant": restaurant_to_dict(restaurant),
        "urls": urls,
        "dns": dns_result,
        "email": {
            "welcome": welcome_status,
            "admin": "Sent" if admin.get("success") else "Not sent",
        },
    }
