from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import status
from sqlalchemy import case, func

from app.core.errors import ApiError
from app.models.reservation import RESERVATION_STATUSES, Reservation
from app.services.tenant_scope import TenantScope

logger = logging.getLogger(__name__)

MIN_LEAD_TIME = timedelta(hours=1)
TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


def normalize_time(value: str) -> str:
    hours, minutes = value.strip().split(":")
    return f"{int(hours):02d}:{int(minutes):02d}"


def _zone(tz_name: str | None):
    try:
        return ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown restaurant timezone %r, using UTC", tz_name)
        return timezone.utc


def ensure_bookable(
    reservation_date: date,
    reservation_time: str,
    tz_name: str | None = "UTC",
    now: datetime | None = None,
) -> None:
    """Reject slots that are not strictly more than one hour ahead, in the restaurant's timezone."""
    zone = _zone(tz_name)
    hours, minutes = (int(part) for part in normalize_time(reservation_time).split(":"))
    slot = datetime.combine(reservation_date, datetime.min.time()).replace(hour=hours, minute=minutes, tzinfo=zone)
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    if slot <= current + MIN_LEAD_TIME:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "Invalid reservation time",
            "Reservation must be at least 1 hour in the future",
        )


def validate_status(value: str) -> str:
    normalized = (value or "").strip().lower()
    if normalized not in RESERVATION_STATUSES:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "Invalid status",
            f"Invalid status. Must be one of: {', '.join(RESERVATION_STATUSES)}",
        )
    return normalized


def reservation_stats(scope: TenantScope) -> dict[str, int]:
    columns = [func.count(Reservation.id)]
    for name in RESERVATION_STATUSES:
        columns.append(func.sum(case((Reservation.status == name, 1), else_=0)))
    row = scope.query(Reservation).with_entities(*columns).one()
    stats = {"total": int(row[0] or 0)}
    for index, name in enumerate(RESERVATION_STATUSES, start=1):
        stats[name] = int(row[index] or 0)
    return stats


def reservation_to_dict(reservation: Reservation) -> dict:
    return {
        "id": reservation.id,
        "restaurant_id": reservation.restaurant_id,
        "customer_name": reservation.customer_name,
        "customer_email": reservation.customer_email,
        "customer_phone": reservation.customer_phone,
        "reservation_date": reservation.reservation_date.isoformat() if reservation.reservation_date else None,
        "reservation_time": reservation.reservation_time,
        "party_size": reservation.party_size,
        "special_requests": reservation.special_requests,
        "table_number": reservation.table_number,
        "notes": reservation.notes,
        "status": reservation.status,
        "created_by": reservation.created_by,
        "created_at": reservation.created_at.isoformat() if reservation.created_at else None,
        "updated_at": reservation.updated_at.isoformat() if reservation.updated_at else None,
    }
