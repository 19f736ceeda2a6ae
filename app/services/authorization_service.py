from __future__ import annotations

import logging
from typing import Any

from fastapi import Request, status
from sqlalchemy.orm import Session

from app.core.config import PUBLIC_PATH_PREFIXES
from app.core.errors import ApiError
from app.models.user import User
from app.services.tenant_context import RestaurantContext

logger = logging.getLogger(__name__)

ROLE_HIERARCHY = {
    "admin": 4,
    "owner": 3,
    "manager": 2,
    "staff": 1,
    "customer": 0,
}


class AuthorizationService:
    """Centralize restaurant-access and role checks."""

    @staticmethod
    def normalize_role(role: str | None) -> str:
        return (role or "").strip().lower()

    @classmethod
    def role_level(cls, role: str | None) -> int:
        return ROLE_HIERARCHY.get(cls.normalize_role(role), 0)

    @staticmethod
    def is_public_path(path: str) -> bool:
        return any(path.startswith(prefix) for prefix in PUBLIC_PATH_PREFIXES if prefix)

    @staticmethod
    def log_access_denied(*, reason: str, user: Any, restaurant_id: int | None, request: Request) -> None:
        endpoint = f"{request.method} {request.url.path}"
        logger.warning(
            "Access denied (%s): user_id=%s user_role=%s user_restaurant=%s restaurant_id=%s endpoint=%s",
            reason,
            getattr(user, "id", None),
            getattr(user, "role", None),
            getattr(user, "restaurant_id", None),
            restaurant_id,
            endpoint,
        )

    @staticmethod
    def user_belongs_to_restaurant(db: Session, user_id: int, restaurant_id: int) -> bool:
        count = (
            db.query(User.id)
            .filter(User.id == user_id, User.restaurant_id == restaurant_id)
            .count()
        )
        return count > 0

    @classmethod
    def validate_restaurant_access(
        cls,
        *,
        db: Session,
        request: Request,
        user: Any | None,
        context: RestaurantContext | None,
    ) -> None:
        if cls.is_public_path(request.url.path):
            return

        if context is None:
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "Missing restaurant context",
                "Restaurant context not found in request",
            )

        if user is None:
            return

        if not cls.user_belongs_to_restaurant(db, int(user.id), context.restaurant_id):
            cls.log_access_denied(
                reason="restaurant_mismatch",
                user=user,
                restaurant_id=context.restaurant_id,
                request=request,
            )
            raise ApiError(
                status.HTTP_403_FORBIDDEN,
                "Access denied",
                "User does not have access to this restaurant",
            )

    @classmethod
    def ensure_min_role(
        cls,
        *,
        request: Request,
        user: Any,
        restaurant_id: int | None,
        min_role: str,
    ) -> None:
        if cls.role_level(getattr(user, "role", None)) < cls.role_level(min_role):
            cls.log_access_denied(
                reason="role_denied",
                user=user,
                restaurant_id=restaurant_id,
                request=request,
            )
            raise ApiError(
                status.HTTP_403_FORBIDDEN,
                "Insufficient permissions",
                f"Minimum role '{min_role}' required for this action",
            )
