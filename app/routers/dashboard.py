from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, time, timedelta
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, text
from sqlalchemy.orm import selectinload

from app.core.errors import ApiError
from app.deps import get_restaurant_context, get_tenant_scope, require_role
from app.models.menu_item import MenuItem
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.user import User
from app.services.tenant_context import RestaurantContext
from app.services.tenant_scope import TenantScope

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

MANAGER_ACCESS = require_role("manager")

PERIOD_DAYS = {"today": 0, "7days": 7, "30days": 30}


def _today_start() -> datetime:
    return datetime.combine(datetime.utcnow().date(), time.min)


def _period_start(period: str) -> datetime:
    return _today_start() - timedelta(days=PERIOD_DAYS[period])


def _scalar(scope: TenantScope, context: RestaurantContext, sql: str, **params: Any) -> Any:
    filtered = context.add_restaurant_filter(sql, params)
    return scope.db.execute(text(filtered.text), filtered.values).scalar()


def _as_int(value: Any) -> int:
    return int(value or 0)


def _as_float(value: Any) -> float:
    return round(float(value or 0), 2)


@router.get("/analytics")
def dashboard_analytics(
    _user: User = Depends(MANAGER_ACCESS),
    context: RestaurantContext = Depends(get_restaurant_context),
    scope: TenantScope = Depends(get_tenant_scope),
):
    stats = {
        "total_orders": _as_int(_scalar(scope, context, "SELECT COUNT(*) FROM orders")),
        "pending_orders": _as_int(
            _scalar(scope, context, "SELECT COUNT(*) FROM orders WHERE status = :status", status="pending")
        ),
        "completed_orders": _as_int(
            _scalar(scope, context, "SELECT COUNT(*) FROM orders WHERE status = :status", status="delivered")
        ),
        "cancelled_orders": _as_int(
            _scalar(scope, context, "SELECT COUNT(*) FROM orders WHERE status = :status", status="cancelled")
        ),
        "total_revenue": _as_float(_scalar(scope, context, "SELECT COALESCE(SUM(total_amount), 0) FROM orders")),
        "avg_order_value": _as_float(_scalar(scope, context, "SELECT COALESCE(AVG(total_amount), 0) FROM orders")),
        "active_menu_items": _as_int(
            _scalar(scope, context, "SELECT COUNT(*) FROM menu_items WHERE is_active = :active", active=True)
        ),
        "total_users": _as_int(_scalar(scope, context, "SELECT COUNT(*) FROM users")),
    }
    return {"success": True, "data": {"stats": stats, "restaurantId": context.restaurant_id}}


def _bucket_label(period: str, created_at: datetime) -> str:
    if period == "today":
        return f"{created_at.hour:02d}:00"
    return created_at.date().isoformat()


@router.get("/orders-by-period")
def orders_by_period(
    period: str = Query("today"),
    _user: User = Depends(MANAGER_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    if period not in PERIOD_DAYS:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid period", "Invalid period. Use: today, 7days, or 30days")

    rows = (
        scope.query(Order)
        .filter(Order.created_at >= _period_start(period))
        .with_entities(Order.created_at, Order.total_amount)
        .order_by(Order.created_at.asc())
        .all()
    )

    # Buckets keep chronological order: hours for today, ISO dates otherwise.
    buckets: "OrderedDict[str, Dict[str, float]]" = OrderedDict()
    for created_at, total in rows:
        label = _bucket_label(period, created_at)
        bucket = buckets.setdefault(label, {"count": 0, "sales": 0.0})
        bucket["count"] += 1
        bucket["sales"] += float(total or 0)

    data: List[Dict[str, Any]] = [
        {
            "time": label,
            "value": int(bucket["count"]),
            "sales": round(bucket["sales"], 2),
            "avgOrderValue": round(bucket["sales"] / bucket["count"], 2) if bucket["count"] else 0.0,
        }
        for label, bucket in buckets.items()
    ]
    return {
        "success": True,
        "data": {
            "period": period,
            "data": data,
            "totalOrders": sum(item["value"] for item in data),
            "totalRevenue": round(sum(item["sales"] for item in data), 2),
        },
    }


@router.get("/top-selling-items")
def top_selling_items(
    limit: int = Query(10, ge=1, le=100),
    _user: User = Depends(MANAGER_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    quantity = func.coalesce(func.sum(OrderItem.quantity), 0)
    revenue = func.coalesce(func.sum(OrderItem.quantity * OrderItem.price), 0)
    rows = (
        scope.query(MenuItem)
        .join(
            OrderItem,
            (OrderItem.menu_item_id == MenuItem.id) & (OrderItem.restaurant_id == MenuItem.restaurant_id),
        )
        .filter(MenuItem.is_active.is_(True))
        .with_entities(MenuItem.id, MenuItem.name, MenuItem.price, quantity.label("orders"), revenue.label("revenue"))
        .group_by(MenuItem.id, MenuItem.name, MenuItem.price)
        .having(quantity > 0)
        .order_by(quantity.desc())
        .limit(limit)
        .all()
    )
    return {
        "success": True,
        "data": [
            {
                "id": row.id,
                "name": row.name,
                "price": float(row.price or 0),
                "orders": int(row.orders or 0),
                "revenue": _as_float(row.revenue),
            }
            for row in rows
        ],
    }


@router.get("/payment-methods")
def payment_methods(
    _user: User = Depends(MANAGER_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    order_count = func.count(Order.id)
    rows = (
        scope.query(Order)
        .filter(Order.payment_method.isnot(None))
        .with_entities(Order.payment_method, order_count.label("orders"), func.coalesce(func.sum(Order.total_amount), 0))
        .group_by(Order.payment_method)
        .order_by(order_count.desc())
        .all()
    )
    total_orders = sum(int(row[1]) for row in rows)
    total_value = round(sum(float(row[2] or 0) for row in rows), 2)
    methods = [
        {
            "method": method,
            "orders": int(count),
            "value": _as_float(value),
            "percentage": round(int(count) * 100 / total_orders) if total_orders else 0,
        }
        for method, count, value in rows
    ]
    return {"success": True, "data": {"methods": methods, "totalOrders": total_orders, "totalValue": total_value}}


@router.get("/recent-orders")
def recent_orders(
    limit: int = Query(10, ge=1, le=100),
    _user: User = Depends(MANAGER_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    orders = (
        scope.query(Order)
        .options(selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )

    user_ids = {order.user_id for order in orders if order.user_id}
    users = {}
    if user_ids:
        users = {user.id: user for user in scope.query(User).filter(User.id.in_(user_ids)).all()}

    item_ids = {item.menu_item_id for order in orders for item in order.items if item.menu_item_id}
    names = {}
    if item_ids:
        names = dict(scope.query(MenuItem).filter(MenuItem.id.in_(item_ids)).with_entities(MenuItem.id, MenuItem.name))

    data = []
    for order in orders:
        user = users.get(order.user_id)
        data.append(
            {
                "id": order.id,
                "customer": (user.name if user else None) or order.customer_name or "Guest",
                "email": (user.email if user else None) or order.customer_email,
                "status": order.status,
                "total": float(order.total_amount or 0),
                "payment": order.payment_method,
                "time": order.created_at.isoformat() if order.created_at else None,
                "items": [
                    {"name": names[item.menu_item_id], "quantity": item.quantity, "price": float(item.price or 0)}
                    for item in order.items
                    if item.menu_item_id in names
                ],
            }
        )
    return {"success": True, "data": data}


@router.get("/overview")
def dashboard_overview(
    _user: User = Depends(MANAGER_ACCESS),
    context: RestaurantContext = Depends(get_restaurant_context),
    scope: TenantScope = Depends(get_tenant_scope),
):
    today = _today_start()
    week = today - timedelta(days=7)
    month = today - timedelta(days=30)

    def orders_since(since: datetime) -> int:
        return _as_int(_scalar(scope, context, "SELECT COUNT(*) FROM orders WHERE created_at >= :since", since=since))

    def revenue_since(since: datetime) -> float:
        return _as_float(
            _scalar(
                scope,
                context,
                "SELECT COALESCE(SUM(total_amount), 0) FROM orders WHERE created_at >= :since",
                since=since,
            )
        )

    return {
        "success": True,
        "data": {
            "todayOrders": orders_since(today),
            "weekOrders": orders_since(week),
            "monthOrders": orders_since(month),
            "todayRevenue": revenue_since(today),
            "weekRevenue": revenue_since(week),
            "monthRevenue": revenue_since(month),
            "uniqueCustomers": _as_int(
                _scalar(scope, context, "SELECT COUNT(DISTINCT user_id) FROM orders WHERE user_id IS NOT NULL")
            ),
            "activeItems": _as_int(
                _scalar(scope, context, "SELECT COUNT(*) FROM menu_items WHERE is_active = :active", active=True)
            ),
        },
    }
