from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import selectinload

from app.core.errors import ApiError
from app.deps import get_broadcaster, get_tenant_scope, require_restaurant_access, require_role
from app.models.order import Order
from app.models.user import User
from app.services.authorization_service import AuthorizationService
from app.services.order_events import emit_order_created, emit_order_status_changed
from app.services.orders import (
    ACCEPTED_STATUS_INPUTS,
    OrderLine,
    active_orders_query,
    normalize_status,
    order_to_dict,
    place_guest_order,
    place_order,
)
from app.services.realtime import RealtimeBroadcaster
from app.services.tenant_scope import TenantScope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])

STAFF_ACCESS = require_role("staff")


class OrderLineIn(BaseModel):
    menu_item_id: int = Field(..., ge=1)
    quantity: int = Field(..., ge=1)
    notes: Optional[str] = None


class OrderCreate(BaseModel):
    items: List[OrderLineIn] = Field(..., min_length=1)
    delivery_address: Optional[str] = None
    special_instructions: Optional[str] = None
    customer_phone: Optional[str] = None
    payment_method: Optional[str] = None


class GuestOrderCreate(BaseModel):
    items: List[OrderLineIn] = Field(..., min_length=1)
    special_instructions: Optional[str] = None
    session_id: Optional[str] = Field(default=None, max_length=120)
    payment_method: Optional[str] = Field(default=None, max_length=30)
    tip_amount: float = Field(default=0, ge=0)


class StatusUpdate(BaseModel):
    status: str = Field(..., description=f"One of: {', '.join(ACCEPTED_STATUS_INPUTS)}")


def _lines(items: List[OrderLineIn]) -> list[OrderLine]:
    return [OrderLine(menu_item_id=i.menu_item_id, quantity=i.quantity, notes=i.notes) for i in items]


def _placed(order: Order) -> dict:
    return {
        "message": "Order placed successfully",
        "order_id": order.id,
        "total_amount": float(order.total_amount),
    }


def _with_items(query):
    return query.options(selectinload(Order.items)).order_by(Order.created_at.desc(), Order.id.desc())


@router.post("", status_code=201)
def create_order(
    payload: OrderCreate,
    user: User = Depends(require_restaurant_access),
    scope: TenantScope = Depends(get_tenant_scope),
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster),
):
    order = place_order(
        scope,
        _lines(payload.items),
        user_id=user.id,
        delivery_address=payload.delivery_address,
        special_instructions=payload.special_instructions,
        customer_name=user.name,
        customer_email=user.email,
        customer_phone=payload.customer_phone or user.phone,
        payment_method=payload.payment_method,
    )
    emit_order_created(broadcaster, order)
    return _placed(order)


@router.post("/guest", status_code=201)
def create_guest_order(
    payload: GuestOrderCreate,
    scope: TenantScope = Depends(get_tenant_scope),
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster),
):
    order = place_guest_order(
        scope,
        _lines(payload.items),
        tip_amount=payload.tip_amount,
        special_instructions=payload.special_instructions,
        session_id=payload.session_id,
        payment_method=payload.payment_method,
    )
    emit_order_created(broadcaster, order)
    return _placed(order)


@router.get("")
def list_orders(
    order_status: Optional[str] = None,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    query = scope.query(Order)
    if order_status:
        query = query.filter(Order.status == normalize_status(order_status))
    return [order_to_dict(o) for o in _with_items(query).all()]


@router.get("/my-orders")
def list_my_orders(
    user: User = Depends(require_restaurant_access),
    scope: TenantScope = Depends(get_tenant_scope),
):
    query = scope.query(Order).filter(Order.user_id == user.id)
    return [order_to_dict(o) for o in _with_items(query).all()]


@router.get("/active")
def list_active_orders(scope: TenantScope = Depends(get_tenant_scope)):
    return {"orders": [order_to_dict(o) for o in _with_items(active_orders_query(scope)).all()]}


@router.get("/session/{session_id}")
def list_session_orders(session_id: str, scope: TenantScope = Depends(get_tenant_scope)):
    query = active_orders_query(scope).filter(Order.session_id == session_id)
    return {"orders": [order_to_dict(o) for o in _with_items(query).all()]}


@router.get("/{order_id}")
def get_order(
    order_id: int,
    request: Request,
    user: User = Depends(require_restaurant_access),
    scope: TenantScope = Depends(get_tenant_scope),
):
    order = scope.get_or_404(Order, order_id, label="Order")
    if order.user_id != user.id:
        AuthorizationService.ensure_min_role(
            request=request,
            user=user,
            restaurant_id=scope.restaurant_id,
            min_role="staff",
        )
    return order_to_dict(order)


@router.patch("/{order_id}/status")
def update_order_status(
    order_id: int,
    payload: StatusUpdate,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster),
):
    new_status = normalize_status(payload.status)
    order = scope.get_or_404(Order, order_id, label="Order")

    previous_status = order.status
    scope.apply(order, {"status": new_status})
    scope.db.commit()
    scope.db.refresh(order)

    logger.info(
        "Order status updated order_id=%s restaurant_id=%s %s -> %s",
        order.id,
        scope.restaurant_id,
        previous_status,
        new_status,
    )
    emit_order_status_changed(broadcaster, order, previous_status)
    return {"message": "Order status updated successfully", "order": order_to_dict(order)}
