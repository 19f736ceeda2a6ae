from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

from fastapi import Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.config import BASE_DOMAIN, DEFAULT_RESTAURANT_SLUG, RESERVED_SUBDOMAINS
from app.core.errors import ApiError
from app.models.restaurant import Restaurant


logger = logging.getLogger(__name__)


class TenantResolutionError(ApiError):
    pass


@dataclass(frozen=True)
class ResolutionInputs:
    custom_domain: str | None = None
    subdomain: str | None = None
    path_restaurant: str | None = None
    slug_header: str | None = None
    id_header: str | None = None

    @property
    def attempted_context(self) -> str | None:
        return self.id_header or self.slug_header or self.path_restaurant or self.subdomain


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class TenantResolver:
    """Resolve the restaurant owning a request.

    Methods are tried in a fixed order (custom domain, subdomain, path or query
    parameter, slug header, id header) and only the first one present is
    attempted. When nothing matched and no id header was sent the ``default``
    restaurant is used. Inactive restaurants never resolve.
    """

    @staticmethod
    def normalize_host(host: str) -> str:
        normalized = (host or "").split(",")[0].strip().lower()
        if not normalized:
            return ""

        if "://" in normalized:
            normalized = urlsplit(normalized).hostname or ""
            return normalized.lower()

        normalized = normalized.split("/")[0].strip()
        if normalized.startswith("["):
            # IPv6 literal, with or without port
            return normalized.split("]")[0].lstrip("[")
        if ":" in normalized:
            normalized = normalized.split(":")[0].strip()
        return normalized.rstrip(".")

    @staticmethod
    def _is_ip_address(host: str) -> bool:
        try:
            ipaddress.ip_address(host)
        except ValueError:
            return False
        return True

    @classmethod
    def extract_subdomain(cls, host: str) -> str | None:
        """First label of the host, ignoring ports, IP literals, bare names and reserved labels."""
        normalized_host = cls.normalize_host(host)
        if not normalized_host or cls._is_ip_address(normalized_host):
            return None

        labels = normalized_host.split(".")
        if len(labels) < 2 or normalized_host == BASE_DOMAIN:
            return None

        label = labels[0].strip()
        if not label or label in RESERVED_SUBDOMAINS:
            return None
        return label

    @classmethod
    def inputs_from_request(cls, request: Request) -> ResolutionInputs:
        headers = request.headers
        custom_domain = _clean(headers.get("x-custom-domain")) or _clean(headers.get("x-forwarded-host"))
        if custom_domain:
            custom_domain = cls.normalize_host(custom_domain) or None

        path_restaurant = _clean(request.path_params.get("restaurant")) or _clean(
            request.query_params.get("restaurant")
        )

        return ResolutionInputs(
            custom_domain=custom_domain,
            subdomain=cls.extract_subdomain(headers.get("host") or ""),
            path_restaurant=path_restaurant.lower() if path_restaurant else None,
            slug_header=(_clean(headers.get("x-restaurant-slug")) or "").lower() or None,
            id_header=_clean(headers.get("x-restaurant-id")),
        )

    @staticmethod
    def find_by_domain(db: Session, domain: str) -> Restaurant | None:
        return (
            db.query(Restaurant)
            .filter(
                or_(Restaurant.domain == domain, Restaurant.slug == domain),
                Restaurant.is_active.is_(True),
            )
            .first()
        )

    @staticmethod
    def find_by_slug(db: Session, slug: str) -> Restaurant | None:
        return (
            db.query(Restaurant)
            .filter(Restaurant.slug == slug, Restaurant.is_active.is_(True))
            .first()
        )

    @staticmethod
    def find_by_id(db: Session, restaurant_id: str | int) -> Restaurant | None:
        try:
            parsed_id = int(str(restaurant_id).strip())
        except (TypeError, ValueError):
            return None
        return (
            db.query(Restaurant)
            .filter(Restaurant.id == parsed_id, Restaurant.is_active.is_(True))
            .first()
        )

    @classmethod
    def find_default(cls, db: Session) -> Restaurant | None:
        return cls.find_by_slug(db, DEFAULT_RESTAURANT_SLUG)

    @classmethod
    def resolve(cls, db: Session, request: Request) -> Restaurant:
        inputs = cls.inputs_from_request(request)
        return cls.resolve_inputs(db, inputs)

    @classmethod
    def resolve_inputs(cls, db: Session, inputs: ResolutionInputs) -> Restaurant:
        restaurant: Restaurant | None = None
        method: str | None = None

        if inputs.custom_domain:
            method = "custom_domain"
            restaurant = cls.find_by_domain(db, inputs.custom_domain)
        elif inputs.subdomain:
            method = "subdomain"
            restaurant = cls.find_by_slug(db, inputs.subdomain)
        elif inputs.path_restaurant:
            method = "path"
            restaurant = cls.find_by_slug(db, inputs.path_restaurant)
        elif inputs.slug_header:
            method = "slug_header"
            restaurant = cls.find_by_slug(db, inputs.slug_header)
        elif inputs.id_header:
            method = "id_header"
            restaurant = cls.find_by_id(db, inputs.id_header)
            if restaurant is None:
                logger.warning("Tenant resolution failed: restaurant id %s not found or inactive", inputs.id_header)
                raise TenantResolutionError(
                    status.HTTP_400_BAD_REQUEST,
                    "Invalid restaurant ID",
                    f"Restaurant with ID {inputs.id_header} not found or inactive",
                )

        if restaurant is None and not inputs.id_header:
            if method is not None:
                logger.info("Tenant resolution via %s found nothing, trying default restaurant", method)
            method = "default"
            restaurant = cls.find_default(db)

        if restaurant is None:
            attempted = inputs.attempted_context
            if attempted:
                logger.warning("Tenant resolution failed: context %s not found or inactive", attempted)
                raise TenantResolutionError(
                    status.HTTP_404_NOT_FOUND,
                    "Restaurant not found",
                    f"Restaurant context '{attempted}' not found or inactive",
                )
            logger.warning("Tenant resolution failed: no restaurant context supplied")
            raise TenantResolutionError(
                status.HTTP_400_BAD_REQUEST,
                "Missing restaurant context",
                "Please provide restaurant context via X-Restaurant-Id header or other supported methods",
            )

        logger.info(
            "Tenant resolved restaurant_id=%s slug=%s",
            restaurant.id,
            restaurant.slug,
            extra={"resolution_method": method},
        )
        return restaurant
