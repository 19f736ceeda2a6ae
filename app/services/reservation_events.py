from __future__ import annotations

from app.models.reservation import Reservation
from app.services.realtime import RealtimeBroadcaster, restaurant_room
from app.services.reservations import reservation_to_dict


def emit_reservation_created(broadcaster: RealtimeBroadcaster, reservation: Reservation) -> None:
    broadcaster.emit(
        restaurant_room(reservation.restaurant_id),
        "reservation_created",
        reservation_to_dict(reservation),
    )


def emit_reservation_updated(broadcaster: RealtimeBroadcaster, reservation: Reservation) -> None:
    broadcaster.emit(
        restaurant_room(reservation.restaurant_id),
        "reservation_updated",
        reservation_to_dict(reservation),
    )


def emit_reservation_deleted(broadcaster: RealtimeBroadcaster, restaurant_id: int, reservation_id: int) -> None:
    broadcaster.emit(restaurant_room(restaurant_id), "reservation_deleted", {"id": reservation_id})
