# app/routers/auth.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import ApiError
from app.deps import get_current_user
from app.models.restaurant import Restaurant
from app.models.user import User
from app.services.auth import create_user_token, hash_password, verify_password
from app.services.authorization_service import AuthorizationService
from app.services.restaurant_service import RestaurantSeed, create_restaurant, generate_unique_slug
from app.services.tenant_resolver import TenantResolver
from app.services.tenant_scope import reject_null_columns
from utils.slug import slug_from_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterPayload(BaseModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Literal["customer", "admin"] = "customer"
    phone: Optional[str] = None
    address: Optional[str] = None
    restaurant_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("restaurant_name", "restaurantName")
    )
    restaurant_slug: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("restaurant_slug", "restaurantSlug")
    )


class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserCreate(BaseModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Literal["customer", "staff", "manager", "owner", "admin"]
    phone: Optional[str] = None
    address: Optional[str] = None


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    role: Optional[Literal["customer", "staff", "manager", "owner", "admin"]] = None
    is_active: Optional[bool] = None


def _user_to_dict(user: User, restaurant: Restaurant | None = None) -> dict:
    data = {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "phone": user.phone,
        "address": user.address,
        "is_active": user.is_active,
        "restaurant_id": user.restaurant_id,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }
    if restaurant is not None:
        data["restaurant_slug"] = restaurant.slug
        data["restaurant_name"] = restaurant.name
    return data


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _restaurant_for_new_admin(db: Session, payload: RegisterPayload, email: str) -> Restaurant:
    base = payload.restaurant_slug or payload.restaurant_name or slug_from_email(email)
    slug = generate_unique_slug(db, base)
    name = payload.restaurant_name or f"{payload.name}'s Restaurant"
    seed = RestaurantSeed(
        name=name,
        slug=slug,
        description=f"Welcome to {name}",
        primary_color="#3b82f6",
        secondary_color="#ffffff",
        accent_color="#10b981",
        font_family="Inter",
        email=email,
        phone=payload.phone,
        address=payload.address,
    )
    return create_restaurant(db, seed)


@router.post("/register", status_code=201)
def register(payload: RegisterPayload, db: Session = Depends(get_db)):
    email = _normalize_email(payload.email)
    if db.query(User.id).filter(User.email == email).first():
        raise ApiError(status.HTTP_400_BAD_REQUEST, "User already exists")

    try:
        if payload.role == "admin":
            restaurant = _restaurant_for_new_admin(db, payload, email)
        else:
            restaurant = TenantResolver.find_default(db)
            if restaurant is None:
                raise ApiError(
                    status.HTTP_400_BAD_REQUEST,
                    "Default restaurant not found",
                    "Customers can only register once the default restaurant exists",
                )

        user = User(
            name=payload.name.strip(),
            email=email,
            password_hash=hash_password(payload.password),
            role=payload.role,
            phone=payload.phone,
            address=payload.address,
            restaurant_id=restaurant.id,
            created_at=datetime.utcnow(),
        )
        db.add(user)
        db.flush()
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    logger.info("User registered user_id=%s role=%s restaurant_id=%s", user.id, user.role, restaurant.id)
    return {"user": _user_to_dict(user, restaurant), "token": create_user_token(user, restaurant)}


def _authenticate(db: Session, email: str, password: str) -> tuple[User, Restaurant | None]:
    user = db.query(User).filter(User.email == _normalize_email(email)).first()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid credentials")
    restaurant = db.query(Restaurant).filter(Restaurant.id == user.restaurant_id).first()
    return user, restaurant


@router.post("/login")
def login(payload: LoginPayload, db: Session = Depends(get_db)):
    user, restaurant = _authenticate(db, payload.email, payload.password)
    logger.info("User logged in user_id=%s restaurant_id=%s", user.id, user.restaurant_id)
    return {"user": _user_to_dict(user, restaurant), "token": create_user_token(user, restaurant)}


@router.post("/token")
def token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """Form-data login used by the Swagger UI "Authorize" button."""
    try:
        user, restaurant = _authenticate(db, form_data.username, form_data.password)
    except ApiError:
        raise ApiError(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return {"access_token": create_user_token(user, restaurant), "token_type": "bearer"}


@router.get("/validate")
def validate(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    restaurant = db.query(Restaurant).filter(Restaurant.id == user.restaurant_id).first()
    return {"user": _user_to_dict(user, restaurant)}


def _require_admin(request: Request, user: User) -> None:
    AuthorizationService.ensure_min_role(
        request=request,
        user=user,
        restaurant_id=user.restaurant_id,
        min_role="admin",
    )


def _get_own_restaurant_user(db: Session, caller: User, user_id: int) -> User:
    target = (
        db.query(User)
        .filter(User.id == user_id, User.restaurant_id == caller.restaurant_id)
        .first()
    )
    if target is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "User not found")
    return target


@router.get("/users")
def list_users(request: Request, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    _require_admin(request, user)
    users = (
        db.query(User)
        .filter(User.restaurant_id == user.restaurant_id)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    return [_user_to_dict(u) for u in users]


@router.post("/users", status_code=201)
def create_user(
    payload: UserCreate,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _require_admin(request, user)
    if payload.role == "admin":
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            "Forbidden",
            "Admin users cannot be created through the admin panel",
        )

    email = _normalize_email(payload.email)
    if db.query(User.id).filter(User.email == email).first():
        raise ApiError(status.HTTP_400_BAD_REQUEST, "User already exists")

    created = User(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        role=payload.role,
        phone=payload.phone,
        address=payload.address,
        restaurant_id=user.restaurant_id,
        created_at=datetime.utcnow(),
    )
    db.add(created)
    db.commit()
    db.refresh(created)
    logger.info("User created user_id=%s role=%s restaurant_id=%s", created.id, created.role, user.restaurant_id)
    return _user_to_dict(created)


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _require_admin(request, user)
    target = _get_own_restaurant_user(db, user, user_id)

    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "No fields to update")
    reject_null_columns(User, changes)

    if "email" in changes:
        changes["email"] = _normalize_email(changes["email"])
        taken = db.query(User.id).filter(User.email == changes["email"], User.id != target.id).first()
        if taken:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Email already taken")

    for field, value in changes.items():
        setattr(target, field, value)
    db.commit()
    db.refresh(target)
    return _user_to_dict(target)


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _require_admin(request, user)
    target = _get_own_restaurant_user(db, user, user_id)
    if target.id == user.id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Cannot delete your own account")

    db.delete(target)
    db.commit()
    logger.info("User deleted user_id=%s restaurant_id=%s", user_id, user.restaurant_id)
    return {"message": "User deleted successfully"}
