from __future__ import annotations

from typing import Any, Mapping, Type, TypeVar

from fastapi import status
from sqlalchemy.orm import Query, Session

from app.core.errors import ApiError

ModelT = TypeVar("ModelT")


def reject_null_columns(model: Type[Any], changes: Mapping[str, Any]) -> None:
    """Raise a 400 when ``changes`` would null out a NOT NULL column of ``model``."""
    columns = model.__table__.columns
    for field, value in changes.items():
        column = columns.get(field)
        if value is None and column is not None and not column.nullable:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Validation failed", f"{field} cannot be null")


class TenantScope:
    """Data access bound to one restaurant.

    Every query built here is filtered by ``restaurant_id`` and every insert
    gets the scope's restaurant id, whatever the caller passed.
    """

    def __init__(self, db: Session, restaurant_id: int) -> None:
        if restaurant_id is None:
            raise ValueError("TenantScope requires a restaurant id")
        self.db = db
        self.restaurant_id = int(restaurant_id)

    @staticmethod
    def _tenant_column(model: Type[Any]):
        column = getattr(model, "restaurant_id", None)
        if column is None:
            raise TypeError(f"{model.__name__} is not a tenant-scoped model")
        return column

    def _ensure_owned(self, entity: Any) -> None:
        self._tenant_column(type(entity))
        if int(entity.restaurant_id) != self.restaurant_id:
            raise PermissionError(
                f"{type(entity).__name__} {getattr(entity, 'id', None)} belongs to another restaurant"
            )

    def query(self, model: Type[ModelT]) -> Query:
        return self.db.query(model).filter(self._tenant_column(model) == self.restaurant_id)

    def get(self, model: Type[ModelT], entity_id: int) -> ModelT | None:
        return self.query(model).filter(model.id == entity_id).first()

    def get_or_404(self, model: Type[ModelT], entity_id: int, label: str | None = None) -> ModelT:
        entity = self.get(model, entity_id)
        if entity is None:
            name = label or model.__name__
            raise ApiError(status.HTTP_404_NOT_FOUND, f"{name} not found")
        return entity

    def add(self, model: Type[ModelT], **values: Any) -> ModelT:
        self._tenant_column(model)
        values.pop("restaurant_id", None)
        entity = model(restaurant_id=self.restaurant_id, **values)
        self.db.add(entity)
        return entity

    def apply(self, entity: ModelT, changes: Mapping[str, Any]) -> ModelT:
        self._ensure_owned(entity)
        reject_null_columns(type(entity), changes)
        for field, value in changes.items():
            if field in {"id", "restaurant_id"}:
                continue
            setattr(entity, field, value)
        return entity

    def delete(self, entity: Any) -> None:
        self._ensure_owned(entity)
        self.db.delete(entity)
