from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from fastapi import status

from app.core.errors import ApiError
from app.models.menu_item import MenuItem
from app.models.order import CLOSED_ORDER_STATUSES, ORDER_STATUSES, Order
from app.models.order_item import OrderItem
from app.services.tenant_scope import TenantScope

logger = logging.getLogger(__name__)

# "accept" is still sent by older admin panels
STATUS_ALIASES = {"accept": "accepted"}
ACCEPTED_STATUS_INPUTS = tuple(ORDER_STATUSES) + tuple(STATUS_ALIASES)

GUEST_DEFAULTS = {
    "delivery_address": "Dine-in",
    "customer_name": "Guest",
    "customer_email": "guest@restaurant.com",
    "customer_phone": "",
    "payment_method": "cash",
}

_CENTS = Decimal("0.01")


@dataclass
class OrderLine:
    menu_item_id: int
    quantity: int
    notes: Optional[str] = None


def to_money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(_CENTS)


def normalize_status(value: str) -> str:
    status_value = (value or "").strip().lower()
    if status_value not in ACCEPTED_STATUS_INPUTS:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "Validation failed",
            f"status must be one of: {', '.join(ACCEPTED_STATUS_INPUTS)}",
        )
    return STATUS_ALIASES.get(status_value, status_value)


def price_lines(scope: TenantScope, lines: Iterable[OrderLine]) -> tuple[list[tuple[OrderLine, MenuItem]], Decimal]:
    """Look up every line's menu item inside the tenant and sum price x quantity."""
    priced: list[tuple[OrderLine, MenuItem]] = []
    subtotal = Decimal("0.00")
    for line in lines:
        if not line.menu_item_id or not line.quantity or line.quantity < 1:
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "Invalid order item",
                "Each item must have menu_item_id and a quantity of at least 1",
            )
        menu_item = scope.get(MenuItem, line.menu_item_id)
        if menu_item is None:
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "Invalid order item",
                f"Menu item {line.menu_item_id} not found",
            )
        if not menu_item.is_active:
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "Invalid order item",
                f"Menu item {line.menu_item_id} is not available",
            )
        subtotal += to_money(menu_item.price) * line.quantity
        priced.append((line, menu_item))
    return priced, subtotal.quantize(_CENTS)


def place_order(
    scope: TenantScope,
    lines: list[OrderLine],
    *,
    user_id: Optional[int] = None,
    tip_amount=0,
    delivery_address: Optional[str] = None,
    special_instructions: Optional[str] = None,
    customer_name: Optional[str] = None,
    customer_email: Optional[str] = None,
    customer_phone: Optional[str] = None,
    session_id: Optional[str] = None,
    payment_method: Optional[str] = None,
) -> Order:
    """Write an order and its items in one transaction.

    Nothing is persisted unless every line is valid; any failure rolls the
    session back and is re-raised.
    """
    if not lines:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "Validation failed",
            "Items array is required and must not be empty",
        )

    db = scope.db
    try:
        priced, subtotal = price_lines(scope, lines)
        tip = to_money(tip_amount)
        if tip < 0:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Validation failed", "tip_amount must not be negative")

        order = scope.add(
            Order,
            user_id=user_id,
            total_amount=subtotal + tip,
            tip_amount=tip,
            status="pending",
            delivery_address=delivery_address,
            special_instructions=special_instructions or "",
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            session_id=session_id,
            payment_method=payment_method,
        )
        db.flush()

        for line, menu_item in priced:
            scope.add(
                OrderItem,
                order_id=order.id,
                menu_item_id=menu_item.id,
                quantity=line.quantity,
                price=to_money(menu_item.price),
                notes=line.notes or "",
            )
        db.flush()
        db.commit()
        db.refresh(order)
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Order placed order_id=%s restaurant_id=%s items=%s total=%s guest=%s",
        order.id,
        scope.restaurant_id,
        len(priced),
        order.total_amount,
        user_id is None,
    )
    return order


def place_guest_order(
    scope: TenantScope,
    lines: list[OrderLine],
    *,
    tip_amount=0,
    special_instructions: Optional[str] = None,
    session_id: Optional[str] = None,
    payment_method: Optional[str] = None,
) -> Order:
    return place_order(
        scope,
        lines,
        user_id=None,
        tip_amount=tip_amount or 0,
        special_instructions=special_instructions,
        session_id=session_id or None,
        delivery_address=GUEST_DEFAULTS["delivery_address"],
        customer_name=GUEST_DEFAULTS["customer_name"],
        customer_email=GUEST_DEFAULTS["customer_email"],
        customer_phone=GUEST_DEFAULTS["customer_phone"],
        payment_method=payment_method or GUEST_DEFAULTS["payment_method"],
    )


def active_orders_query(scope: TenantScope):
    return scope.query(Order).filter(Order.status.notin_(CLOSED_ORDER_STATUSES))


def order_item_to_dict(item: OrderItem) -> dict:
    return {
        "id": item.id,
        "menu_item_id": item.menu_item_id,
        "quantity": item.quantity,
        "price": float(item.price or 0),
        "notes": item.notes,
    }


def order_to_dict(order: Order, include_items: bool = True) -> dict:
    data = {
        "id": order.id,
        "restaurant_id": order.restaurant_id,
        "user_id": order.user_id,
        "status": order.status,
        "total_amount": float(order.total_amount or 0),
        "tip_amount": float(order.tip_amount or 0),
        "delivery_address": order.delivery_address,
        "special_instructions": order.special_instructions,
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
        "customer_phone": order.customer_phone,
        "session_id": order.session_id,
        "payment_method": order.payment_method,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
    }
    if include_items:
        data["items"] = [order_item_to_dict(item) for item in order.items]
    return data
