# app/deps.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import ApiError
from app.core.request_context import set_request_context
from app.models.user import User
from app.services.auth import decode_access_token, extract_user_id
from app.services.authorization_service import AuthorizationService
from app.services.realtime import RealtimeBroadcaster
from app.services.tenant_context import RestaurantContext, attach_restaurant_context
from app.services.tenant_context import get_restaurant_context as _context_from_state
from app.services.tenant_resolver import TenantResolver
from app.services.tenant_scope import TenantScope

# Swagger "Authorize" posts credentials here
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)

logger = logging.getLogger(__name__)

_BEARER_HEADERS = {"WWW-Authenticate": "Bearer"}


def get_broadcaster(request: Request) -> RealtimeBroadcaster:
    broadcaster = getattr(request.app.state, "broadcaster", None)
    if broadcaster is None:
        raise RuntimeError("Realtime broadcaster is not configured on app.state")
    return broadcaster


def get_restaurant_context(
    request: Request,
    db: Session = Depends(get_db),
) -> RestaurantContext:
    """Resolve the request's restaurant once and attach it to ``request.state``."""
    context = _context_from_state(request)
    if context is not None:
        return context
    restaurant = TenantResolver.resolve(db, request)
    return attach_restaurant_context(request, restaurant)


def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Reads the JWT, validates it and loads the user."""
    if not token:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Access denied", "No token provided", headers=_BEARER_HEADERS)

    try:
        payload = decode_access_token(token)
    except ValueError:
        raise ApiError(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid token",
            "Token is malformed or expired",
            headers=_BEARER_HEADERS,
        )

    user_id = extract_user_id(payload)
    if user_id is None:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Invalid token", "Token has no user id", headers=_BEARER_HEADERS)

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise ApiError(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid token",
            "User not found or inactive",
            headers=_BEARER_HEADERS,
        )

    request.state.user = user
    set_request_context(user_id=str(user.id))
    return user


def require_restaurant_access(
    request: Request,
    context: RestaurantContext = Depends(get_restaurant_context),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> User:
    AuthorizationService.validate_restaurant_access(db=db, request=request, user=user, context=context)
    return user


def require_role(min_role: str):
    def _dependency(
        request: Request,
        context: RestaurantContext = Depends(get_restaurant_context),
        user: User = Depends(require_restaurant_access),
    ) -> User:
        AuthorizationService.ensure_min_role(
            request=request,
            user=user,
            restaurant_id=context.restaurant_id,
            min_role=min_role,
        )
        return user

    return _dependency


def get_tenant_scope(
    context: RestaurantContext = Depends(get_restaurant_context),
    db: Session = Depends(get_db),
) -> TenantScope:
    return TenantScope(db, context.restaurant_id)
