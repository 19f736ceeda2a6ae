from __future__ import annotations

from datetime import datetime, timezone

from app.models.order import Order
from app.services.realtime import RealtimeBroadcaster, order_room, restaurant_room


def _normalize_status(status: str | None) -> str:
    return (status or "").strip().lower()


def build_order_payload(order: Order, previous_status: str | None = None) -> dict:
    return {
        "orderId": order.id,
        "restaurantId": order.restaurant_id,
        "status": _normalize_status(order.status),
        "previousStatus": _normalize_status(previous_status) if previous_status else None,
        "userId": order.user_id,
        "isGuest": order.user_id is None,
        "sessionId": order.session_id,
        "totalAmount": float(order.total_amount or 0),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def emit_order_created(broadcaster: RealtimeBroadcaster, order: Order) -> None:
    broadcaster.emit(restaurant_room(order.restaurant_id), "new-order", build_order_payload(order))


def emit_order_status_changed(broadcaster: RealtimeBroadcaster, order: Order, previous_status: str | None) -> None:
    payload = build_order_payload(order, previous_status=previous_status)
    broadcaster.emit(order_room(order.id), "order-status-updated", payload)
    if order.user_id is None:
        # Guest clients only know their order ids, the restaurant room keeps the admin panel in sync.
        broadcaster.emit(restaurant_room(order.restaurant_id), "guest-order-status-updated", payload)
