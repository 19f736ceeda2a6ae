from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field, model_validator
from sqlalchemy import case, func

from app.core.errors import ApiError
from app.deps import get_tenant_scope, require_restaurant_access, require_role
from app.models.feedback import Feedback
from app.models.menu_item import MenuItem
from app.models.order import Order
from app.models.user import User
from app.services.tenant_scope import TenantScope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/feedbacks", tags=["feedback"])

STAFF_ACCESS = require_role("staff")
MANAGER_ACCESS = require_role("manager")

# Order ids the client app sends for "no order"
PLACEHOLDER_ORDER_IDS = {0, 999}


class FeedbackCreate(BaseModel):
    customer_name: Optional[str] = Field(default=None, max_length=120)
    customer_email: Optional[EmailStr] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    food_rating: Optional[int] = Field(default=None, ge=1, le=5)
    service_rating: Optional[int] = Field(default=None, ge=1, le=5)
    atmosphere_rating: Optional[int] = Field(default=None, ge=1, le=5)
    feedback_text: Optional[str] = None
    feedback_type: str = Field(default="general", max_length=30)
    is_public: bool = True
    is_verified: bool = False

    @model_validator(mode="after")
    def _has_rating(self):
        if self.rating is None and None in (self.food_rating, self.service_rating, self.atmosphere_rating):
            raise ValueError("rating, or food, service and atmosphere ratings, are required")
        return self


class PublicFeedbackCreate(FeedbackCreate):
    order_id: Optional[int] = None
    customer_name: str = Field(..., min_length=1, max_length=120)


class FeedbackResponse(BaseModel):
    response_text: str


class FeedbackVerify(BaseModel):
    is_verified: bool = True


def overall_rating(
    rating: Optional[int],
    food_rating: Optional[int],
    service_rating: Optional[int],
    atmosphere_rating: Optional[int],
) -> int:
    """Mean of the three detailed ratings when all are given, else ``rating``."""
    if food_rating and service_rating and atmosphere_rating:
        mean = (food_rating + service_rating + atmosphere_rating) / 3
        return int(mean + 0.5)
    return int(rating)


def order_number(order_id: int) -> str:
    return f"ORD-{order_id:06d}"


def _feedback_to_dict(feedback: Feedback) -> dict:
    return {
        "id": feedback.id,
        "restaurant_id": feedback.restaurant_id,
        "order_id": feedback.order_id,
        "customer_name": feedback.customer_name,
        "customer_email": feedback.customer_email,
        "rating": feedback.rating,
        "food_rating": feedback.food_rating,
        "service_rating": feedback.service_rating,
        "atmosphere_rating": feedback.atmosphere_rating,
        "feedback_text": feedback.feedback_text,
        "feedback_type": feedback.feedback_type,
        "order_number": feedback.order_number,
        "order_items": feedback.order_items,
        "is_public": feedback.is_public,
        "is_verified": feedback.is_verified,
        "response_text": feedback.response_text,
        "response_date": feedback.response_date.isoformat() if feedback.response_date else None,
        "created_at": feedback.created_at.isoformat() if feedback.created_at else None,
        "updated_at": feedback.updated_at.isoformat() if feedback.updated_at else None,
    }


def _order_snapshot(scope: TenantScope, order: Order) -> list[dict]:
    names = {}
    item_ids = [item.menu_item_id for item in order.items if item.menu_item_id]
    if item_ids:
        names = dict(scope.query(MenuItem).filter(MenuItem.id.in_(item_ids)).with_entities(MenuItem.id, MenuItem.name))
    return [
        {
            "name": names.get(item.menu_item_id),
            "quantity": item.quantity,
            "price": float(item.price or 0),
            "notes": item.notes,
        }
        for item in order.items
    ]


def _store(scope: TenantScope, payload: FeedbackCreate, **extra) -> Feedback:
    feedback = scope.add(
        Feedback,
        customer_name=extra.pop("customer_name", payload.customer_name),
        customer_email=extra.pop("customer_email", str(payload.customer_email) if payload.customer_email else None),
        rating=overall_rating(payload.rating, payload.food_rating, payload.service_rating, payload.atmosphere_rating),
        food_rating=payload.food_rating,
        service_rating=payload.service_rating,
        atmosphere_rating=payload.atmosphere_rating,
        feedback_text=payload.feedback_text,
        feedback_type=payload.feedback_type,
        is_public=payload.is_public,
        is_verified=payload.is_verified,
        **extra,
    )
    scope.db.commit()
    scope.db.refresh(feedback)
    logger.info("Feedback stored id=%s restaurant_id=%s rating=%s", feedback.id, scope.restaurant_id, feedback.rating)
    return feedback


@router.post("/public", status_code=201)
def submit_public_feedback(payload: PublicFeedbackCreate, scope: TenantScope = Depends(get_tenant_scope)):
    order = None
    if payload.order_id and payload.order_id not in PLACEHOLDER_ORDER_IDS:
        order = scope.get(Order, payload.order_id)

    extra: dict = {"order_id": None, "order_number": None, "order_items": None}
    customer_name = payload.customer_name
    customer_email = str(payload.customer_email) if payload.customer_email else None
    if order is not None:
        extra.update(
            order_id=order.id,
            order_number=order_number(order.id),
            order_items=_order_snapshot(scope, order),
        )
        customer_name = customer_name or order.customer_name
        customer_email = customer_email or order.customer_email

    feedback = _store(
        scope,
        payload,
        customer_name=customer_name or "Guest",
        customer_email=customer_email or "",
        **extra,
    )
    return {"success": True, "data": _feedback_to_dict(feedback), "message": "Feedback submitted successfully"}


@router.get("")
def list_feedbacks(_user: User = Depends(STAFF_ACCESS), scope: TenantScope = Depends(get_tenant_scope)):
    rows = scope.query(Feedback).order_by(Feedback.created_at.desc(), Feedback.id.desc()).all()
    return {"success": True, "data": [_feedback_to_dict(f) for f in rows]}


@router.get("/by-date")
def list_feedbacks_by_date(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    query = scope.query(Feedback)
    if start_date and end_date:
        query = query.filter(
            Feedback.created_at >= datetime.combine(start_date, time.min),
            Feedback.created_at <= datetime.combine(end_date, time.max),
        )
    rows = query.order_by(Feedback.created_at.desc(), Feedback.id.desc()).all()
    return {"success": True, "data": [_feedback_to_dict(f) for f in rows]}


def _count_since(since: datetime):
    return func.sum(case((Feedback.created_at >= since, 1), else_=0))


@router.get("/stats")
def feedback_stats(_user: User = Depends(STAFF_ACCESS), scope: TenantScope = Depends(get_tenant_scope)):
    today = datetime.combine(datetime.utcnow().date(), time.min)
    row = (
        scope.query(Feedback)
        .with_entities(
            func.count(Feedback.id),
            func.avg(Feedback.food_rating),
            func.avg(Feedback.service_rating),
            func.avg(Feedback.atmosphere_rating),
            func.avg(Feedback.rating),
            _count_since(today),
            _count_since(today - timedelta(days=7)),
            _count_since(today - timedelta(days=30)),
        )
        .one()
    )
    return {
        "success": True,
        "data": {
            "totalFeedbacks": int(row[0] or 0),
            "averageFoodRating": float(row[1] or 0),
            "averageServiceRating": float(row[2] or 0),
            "averageAtmosphereRating": float(row[3] or 0),
            "averageOverallRating": float(row[4] or 0),
            "todayFeedbacks": int(row[5] or 0),
            "weekFeedbacks": int(row[6] or 0),
            "monthFeedbacks": int(row[7] or 0),
        },
    }


@router.get("/{feedback_id}")
def get_feedback(
    feedback_id: int,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    feedback = scope.get_or_404(Feedback, feedback_id, label="Feedback")
    return {"success": True, "data": _feedback_to_dict(feedback)}


@router.post("", status_code=201)
def create_feedback(
    payload: FeedbackCreate,
    _user: User = Depends(require_restaurant_access),
    scope: TenantScope = Depends(get_tenant_scope),
):
    feedback = _store(scope, payload)
    return {"success": True, "data": _feedback_to_dict(feedback), "message": "Feedback created successfully"}


@router.post("/{feedback_id}/respond")
def respond_to_feedback(
    feedback_id: int,
    payload: FeedbackResponse,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    text = (payload.response_text or "").strip()
    if not text:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Validation failed", "Response text is required")

    feedback = scope.get_or_404(Feedback, feedback_id, label="Feedback")
    scope.apply(feedback, {"response_text": text, "response_date": datetime.utcnow()})
    scope.db.commit()
    scope.db.refresh(feedback)
    return {"success": True, "data": _feedback_to_dict(feedback), "message": "Response added successfully"}


@router.patch("/{feedback_id}/verify")
def verify_feedback(
    feedback_id: int,
    payload: FeedbackVerify,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    feedback = scope.get_or_404(Feedback, feedback_id, label="Feedback")
    scope.apply(feedback, {"is_verified": payload.is_verified})
    scope.db.commit()
    scope.db.refresh(feedback)
    word = "verified" if payload.is_verified else "unverified"
    return {"success": True, "data": _feedback_to_dict(feedback), "message": f"Feedback {word} successfully"}


@router.delete("/{feedback_id}")
def delete_feedback(
    feedback_id: int,
    _user: User = Depends(MANAGER_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    feedback = scope.get_or_404(Feedback, feedback_id, label="Feedback")
    scope.delete(feedback)
    scope.db.commit()
    return {"success": True, "message": "Feedback deleted successfully"}
