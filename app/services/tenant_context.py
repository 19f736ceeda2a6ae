from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping

from fastapi import Request

from app.core.request_context import set_request_context
from app.models.restaurant import Restaurant

_WHERE_PATTERN = re.compile(r"\bwhere\b", re.IGNORECASE)
RESTAURANT_ID_PARAM = "restaurant_id"


@dataclass(frozen=True)
class FilteredQuery:
    text: str
    values: dict[str, Any]


def add_restaurant_filter(
    query: str,
    params: Mapping[str, Any] | None,
    restaurant_id: int,
) -> FilteredQuery:
    """Append a ``restaurant_id`` predicate to a SQL string.

    The predicate is joined with ``AND`` when the statement already has a
    ``WHERE`` clause and introduces one otherwise. It is appended at the end of
    the text, so the statement must not carry GROUP BY / ORDER BY / LIMIT.
    """
    values = dict(params or {})
    values[RESTAURANT_ID_PARAM] = restaurant_id
    keyword = "AND" if _WHERE_PATTERN.search(query) else "WHERE"
    text = f"{query.rstrip()} {keyword} restaurant_id = :{RESTAURANT_ID_PARAM}"
    return FilteredQuery(text=text, values=values)


@dataclass(frozen=True)
class RestaurantContext:
    restaurant_id: int
    restaurant_slug: str
    restaurant: Restaurant

    @classmethod
    def from_restaurant(cls, restaurant: Restaurant) -> "RestaurantContext":
        return cls(restaurant_id=int(restaurant.id), restaurant_slug=restaurant.slug, restaurant=restaurant)

    def add_restaurant_filter(self, query: str, params: Mapping[str, Any] | None = None) -> FilteredQuery:
        return add_restaurant_filter(query, params, self.restaurant_id)


def attach_restaurant_context(request: Request, restaurant: Restaurant) -> RestaurantContext:
    context = RestaurantContext.from_restaurant(restaurant)
    request.state.restaurant_context = context
    request.state.restaurant = restaurant
    request.state.restaurant_id = context.restaurant_id
    request.state.restaurant_slug = context.restaurant_slug
    set_request_context(restaurant_id=str(context.restaurant_id))
    return context


def get_restaurant_context(request: Request) -> RestaurantContext | None:
    return getattr(request.state, "restaurant_context", None)


def get_current_restaurant_id(request: Request) -> int | None:
    restaurant_id = getattr(request.state, "restaurant_id", None)
    if restaurant_id is not None:
        try:
            return int(restaurant_id)
        except (TypeError, ValueError):
            return None

    context = get_restaurant_context(request)
    if context is None:
        return None
    return context.restaurant_id
