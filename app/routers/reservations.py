from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.errors import ApiError
from app.deps import get_broadcaster, get_restaurant_context, get_tenant_scope, require_restaurant_access, require_role
from app.models.reservation import Reservation
from app.models.user import User
from app.services.realtime import RealtimeBroadcaster
from app.services.reservation_events import (
    emit_reservation_created,
    emit_reservation_deleted,
    emit_reservation_updated,
)
from app.services.reservations import (
    TIME_PATTERN,
    ensure_bookable,
    normalize_time,
    reservation_stats,
    reservation_to_dict,
    validate_status,
)
from app.services.tenant_context import RestaurantContext
from app.services.tenant_scope import TenantScope, reject_null_columns

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reservations", tags=["reservations"])

STAFF_ACCESS = require_role("staff")
MANAGER_ACCESS = require_role("manager")

PUBLIC_FALLBACK_EMAIL = "no-email@example.com"


class _ReservationFields(BaseModel):
    @field_validator("customer_name", check_fields=False)
    @classmethod
    def _name_not_blank(cls, value):
        if value is not None and not value.strip():
            raise ValueError("Customer name is required")
        return value.strip() if value is not None else value

    @field_validator("reservation_time", check_fields=False)
    @classmethod
    def _pad_time(cls, value):
        return normalize_time(value) if value is not None else value


class ReservationCreate(_ReservationFields):
    customer_name: str = Field(..., max_length=120)
    customer_email: EmailStr
    customer_phone: Optional[str] = Field(default=None, min_length=10, max_length=30)
    reservation_date: date
    reservation_time: str = Field(..., pattern=TIME_PATTERN)
    party_size: int = Field(..., ge=1)
    special_requests: Optional[str] = Field(default=None, max_length=500)
    table_number: Optional[str] = Field(default=None, max_length=20)
    notes: Optional[str] = Field(default=None, max_length=500)


class PublicReservationCreate(_ReservationFields):
    customer_name: str = Field(..., max_length=120)
    customer_email: Optional[EmailStr] = None
    customer_phone: str = Field(..., min_length=10, max_length=30)
    reservation_date: date
    reservation_time: str = Field(..., pattern=TIME_PATTERN)
    party_size: int = Field(..., ge=1)
    special_requests: Optional[str] = Field(default=None, max_length=500)
    table_number: Optional[str] = Field(default=None, max_length=20)


class ReservationUpdate(_ReservationFields):
    model_config = ConfigDict(extra="forbid")

    customer_name: Optional[str] = Field(default=None, max_length=120)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = Field(default=None, min_length=10, max_length=30)
    reservation_date: Optional[date] = None
    reservation_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    party_size: Optional[int] = Field(default=None, ge=1)
    special_requests: Optional[str] = Field(default=None, max_length=500)
    table_number: Optional[str] = Field(default=None, max_length=20)
    notes: Optional[str] = Field(default=None, max_length=500)


class PublicReservationUpdate(_ReservationFields):
    model_config = ConfigDict(extra="forbid")

    customer_name: Optional[str] = Field(default=None, max_length=120)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = Field(default=None, min_length=10, max_length=30)
    reservation_date: Optional[date] = None
    reservation_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    party_size: Optional[int] = Field(default=None, ge=1)
    special_requests: Optional[str] = Field(default=None, max_length=500)
    table_number: Optional[str] = Field(default=None, max_length=20)


class StatusUpdate(BaseModel):
    status: str


def _timezone(context: RestaurantContext) -> str:
    return getattr(context.restaurant, "timezone", None) or "UTC"


def _create(scope: TenantScope, context: RestaurantContext, values: dict, broadcaster: RealtimeBroadcaster):
    ensure_bookable(values["reservation_date"], values["reservation_time"], _timezone(context))
    reservation = scope.add(Reservation, status="pending", **values)
    scope.db.commit()
    scope.db.refresh(reservation)
    logger.info("Reservation created id=%s restaurant_id=%s", reservation.id, scope.restaurant_id)
    emit_reservation_created(broadcaster, reservation)
    return reservation_to_dict(reservation)


def _update(
    scope: TenantScope,
    context: RestaurantContext,
    reservation_id: int,
    changes: dict,
    broadcaster: RealtimeBroadcaster,
):
    reservation = scope.get_or_404(Reservation, reservation_id, label="Reservation")
    if not changes:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "No fields to update")
    reject_null_columns(Reservation, changes)
    if "reservation_date" in changes or "reservation_time" in changes:
        ensure_bookable(
            changes.get("reservation_date", reservation.reservation_date),
            changes.get("reservation_time", reservation.reservation_time),
            _timezone(context),
        )
    scope.apply(reservation, changes)
    scope.db.commit()
    scope.db.refresh(reservation)
    emit_reservation_updated(broadcaster, reservation)
    return reservation_to_dict(reservation)


def _set_status(scope: TenantScope, reservation_id: int, new_status: str, broadcaster: RealtimeBroadcaster):
    reservation = scope.get_or_404(Reservation, reservation_id, label="Reservation")
    scope.apply(reservation, {"status": new_status})
    scope.db.commit()
    scope.db.refresh(reservation)
    logger.info(
        "Reservation status updated id=%s restaurant_id=%s status=%s",
        reservation.id,
        scope.restaurant_id,
        new_status,
    )
    emit_reservation_updated(broadcaster, reservation)
    return reservation_to_dict(reservation)


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------


@router.get("")
def list_reservations(
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    rows = (
        scope.query(Reservation)
        .order_by(Reservation.reservation_date.desc(), Reservation.reservation_time.desc())
        .all()
    )
    return [reservation_to_dict(r) for r in rows]


@router.get("/by-date")
def list_reservations_by_date(
    start_date: date,
    end_date: date,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    if end_date < start_date:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Validation failed", "end_date must not be before start_date")
    rows = (
        scope.query(Reservation)
        .filter(Reservation.reservation_date >= start_date, Reservation.reservation_date <= end_date)
        .order_by(Reservation.reservation_date.asc(), Reservation.reservation_time.asc())
        .all()
    )
    return [reservation_to_dict(r) for r in rows]


@router.get("/stats/overview")
def get_reservation_stats(
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    return reservation_stats(scope)


@router.post("", status_code=201)
def create_reservation(
    payload: ReservationCreate,
    user: User = Depends(require_restaurant_access),
    context: RestaurantContext = Depends(get_restaurant_context),
    scope: TenantScope = Depends(get_tenant_scope),
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster),
):
    values = payload.model_dump()
    values["customer_email"] = str(values["customer_email"])
    values["created_by"] = user.id
    return _create(scope, context, values, broadcaster)


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


@router.post("/public", status_code=201)
def create_public_reservation(
    payload: PublicReservationCreate,
    context: RestaurantContext = Depends(get_restaurant_context),
    scope: TenantScope = Depends(get_tenant_scope),
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster),
):
    values = payload.model_dump()
    values["customer_email"] = str(values["customer_email"] or PUBLIC_FALLBACK_EMAIL)
    return _create(scope, context, values, broadcaster)


@router.get("/public/{reservation_id}")
def get_public_reservation(reservation_id: int, scope: TenantScope = Depends(get_tenant_scope)):
    return reservation_to_dict(scope.get_or_404(Reservation, reservation_id, label="Reservation"))


@router.put("/public/{reservation_id}")
def update_public_reservation(
    reservation_id: int,
    payload: PublicReservationUpdate,
    context: RestaurantContext = Depends(get_restaurant_context),
    scope: TenantScope = Depends(get_tenant_scope),
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster),
):
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("customer_email") is not None:
        changes["customer_email"] = str(changes["customer_email"])
    return _update(scope, context, reservation_id, changes, broadcaster)


@router.patch("/public/{reservation_id}/cancel")
def cancel_public_reservation(
    reservation_id: int,
    scope: TenantScope = Depends(get_tenant_scope),
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster),
):
    return _set_status(scope, reservation_id, "cancelled", broadcaster)


# ---------------------------------------------------------------------------
# Staff, by id
# ---------------------------------------------------------------------------


@router.get("/{reservation_id}")
def get_reservation(
    reservation_id: int,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    return reservation_to_dict(scope.get_or_404(Reservation, reservation_id, label="Reservation"))


@router.put("/{reservation_id}")
def update_reservation(
    reservation_id: int,
    payload: ReservationUpdate,
    _user: User = Depends(STAFF_ACCESS),
    context: RestaurantContext = Depends(get_restaurant_context),
    scope: TenantScope = Depends(get_tenant_scope),
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster),
):
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("customer_email") is not None:
        changes["customer_email"] = str(changes["customer_email"])
    return _update(scope, context, reservation_id, changes, broadcaster)


@router.patch("/{reservation_id}/status")
def update_reservation_status(
    reservation_id: int,
    payload: StatusUpdate,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster),
):
    return _set_status(scope, reservation_id, validate_status(payload.status), broadcaster)


@router.delete("/{reservation_id}")
def delete_reservation(
    reservation_id: int,
    _user: User = Depends(MANAGER_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster),
):
    reservation = scope.get_or_404(Reservation, reservation_id, label="Reservation")
    scope.delete(reservation)
    scope.db.commit()
    emit_reservation_deleted(broadcaster, scope.restaurant_id, reservation_id)
    return {"message": "Reservation deleted successfully"}
