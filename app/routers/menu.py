from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from sqlalchemy import func

from app.core.errors import ApiError
from app.deps import get_tenant_scope, require_role
from app.models.category import Category
from app.models.menu_item import MenuItem
from app.models.subcategory import Subcategory
from app.models.user import User
from app.services import storage
from app.services.tenant_scope import TenantScope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/menu", tags=["menu"])

STAFF_ACCESS = require_role("staff")
MANAGER_ACCESS = require_role("manager")

UNCATEGORIZED = "uncategorized"


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = None
    position: Optional[int] = Field(default=None, ge=0)


class CategoryUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = None
    position: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class SubcategoryCreate(BaseModel):
    category_id: int = Field(..., ge=1)
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    position: Optional[int] = Field(default=None, ge=0)


class SubcategoryUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category_id: Optional[int] = Field(default=None, ge=1)
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = None
    position: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class CategoryOrder(BaseModel):
    id: int = Field(..., ge=1)
    position: int = Field(..., ge=0)


class CategoryReorder(BaseModel):
    category_orders: List[CategoryOrder] = Field(
        ..., validation_alias=AliasChoices("categoryOrders", "category_orders")
    )


def _category_to_dict(category: Category, subcategories: Optional[list] = None) -> dict[str, Any]:
    data = {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "image_url": category.image_url,
        "position": category.position,
        "is_active": category.is_active,
        "created_at": category.created_at.isoformat() if category.created_at else None,
    }
    if subcategories is not None:
        data["subcategories"] = subcategories
    return data


def _subcategory_to_dict(subcategory: Subcategory) -> dict[str, Any]:
    return {
        "id": subcategory.id,
        "category_id": subcategory.category_id,
        "name": subcategory.name,
        "description": subcategory.description,
        "position": subcategory.position,
        "is_active": subcategory.is_active,
    }


def _menu_item_to_dict(item: MenuItem, category_name: Optional[str] = None, subcategory_name: Optional[str] = None):
    return {
        "id": item.id,
        "restaurant_id": item.restaurant_id,
        "category_id": item.category_id,
        "subcategory_id": item.subcategory_id,
        "category_name": category_name or "Uncategorized",
        "subcategory_name": subcategory_name or "",
        "name": item.name,
        "description": item.description,
        "price": float(item.price) if item.price is not None else None,
        "image_url": item.image_url,
        "is_active": item.is_active,
        "created_at": item.created_at.isoformat() if item.created_at else None,
        "updated_at": item.updated_at.isoformat() if item.updated_at else None,
    }


def _menu_rows(scope: TenantScope, *, active_only: bool = True, category_id: Any = None):
    query = (
        scope.query(MenuItem)
        .outerjoin(Category, MenuItem.category_id == Category.id)
        .outerjoin(Subcategory, MenuItem.subcategory_id == Subcategory.id)
        .add_columns(Category.name, Subcategory.name)
    )
    if active_only:
        query = query.filter(MenuItem.is_active.is_(True))
    if category_id == UNCATEGORIZED:
        query = query.filter(MenuItem.category_id.is_(None))
    elif category_id is not None:
        query = query.filter(MenuItem.category_id == category_id)
    rows = query.order_by(Category.position.asc(), Subcategory.position.asc(), MenuItem.created_at.asc()).all()
    return [_menu_item_to_dict(item, cat_name, sub_name) for item, cat_name, sub_name in rows]


def _ensure_category(scope: TenantScope, category_id: Optional[int]) -> None:
    if category_id is not None and scope.get(Category, category_id) is None:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Validation failed", f"Category {category_id} not found")


def _ensure_subcategory(scope: TenantScope, subcategory_id: Optional[int], category_id: Optional[int]) -> None:
    if subcategory_id is None:
        return
    subcategory = scope.get(Subcategory, subcategory_id)
    if subcategory is None:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Validation failed", f"Subcategory {subcategory_id} not found")
    if category_id is not None and subcategory.category_id != category_id:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "Validation failed",
            f"Subcategory {subcategory_id} does not belong to category {category_id}",
        )


def _upload_menu_image(image: UploadFile, restaurant_id: int) -> str:
    try:
        return storage.upload_image(image, restaurant_id)["url"]
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Menu image upload failed restaurant_id=%s", restaurant_id)
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Upload failed",
            "Failed to upload image to cloud storage",
        ) from exc


def _delete_image_quietly(image_url: Optional[str], restaurant_id: int) -> bool:
    if not image_url:
        return False
    try:
        return storage.delete_image(image_url, restaurant_id)
    except Exception:
        logger.exception("Image deletion failed restaurant_id=%s url=%s", restaurant_id, image_url)
        return False


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


@router.get("")
def list_menu_items(category_id: Optional[str] = None, scope: TenantScope = Depends(get_tenant_scope)):
    if category_id is not None and category_id != UNCATEGORIZED:
        if not category_id.isdigit():
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Validation failed", "category_id must be an integer")
        return _menu_rows(scope, category_id=int(category_id))
    return _menu_rows(scope, category_id=category_id)


@router.get("/category/{category_id}")
def list_menu_items_by_category(category_id: str, scope: TenantScope = Depends(get_tenant_scope)):
    return list_menu_items(category_id=category_id, scope=scope)


@router.get("/categories")
def list_categories(scope: TenantScope = Depends(get_tenant_scope)):
    categories = (
        scope.query(Category)
        .filter(Category.is_active.is_(True))
        .order_by(Category.position.asc(), Category.name.asc())
        .all()
    )
    subcategories = (
        scope.query(Subcategory)
        .filter(Subcategory.is_active.is_(True))
        .order_by(Subcategory.position.asc(), Subcategory.name.asc())
        .all()
    )
    by_category: dict[int, list] = {}
    for sub in subcategories:
        by_category.setdefault(sub.category_id, []).append(_subcategory_to_dict(sub))

    result = [_category_to_dict(c, by_category.get(c.id, [])) for c in categories]

    uncategorized = (
        scope.query(MenuItem)
        .filter(MenuItem.category_id.is_(None), MenuItem.is_active.is_(True))
        .count()
    )
    if uncategorized > 0:
        result.append(
            {
                "id": UNCATEGORIZED,
                "name": "Uncategorized",
                "description": "Items without assigned categories",
                "subcategories": [],
            }
        )
    return result


# ---------------------------------------------------------------------------
# Staff: menu items
# ---------------------------------------------------------------------------


@router.get("/all")
def list_all_menu_items(
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    return _menu_rows(scope, active_only=False)


@router.post("", status_code=201)
def create_menu_item(
    name: str = Form(..., min_length=2, max_length=150),
    price: float = Form(..., gt=0),
    description: Optional[str] = Form(None),
    category_id: Optional[int] = Form(None, ge=1),
    subcategory_id: Optional[int] = Form(None, ge=1),
    is_active: bool = Form(True),
    image_url: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    _ensure_category(scope, category_id)
    _ensure_subcategory(scope, subcategory_id, category_id)

    if image is not None and image.filename:
        image_url = _upload_menu_image(image, scope.restaurant_id)

    item = scope.add(
        MenuItem,
        name=name.strip(),
        description=description,
        price=Decimal(str(price)),
        category_id=category_id,
        subcategory_id=subcategory_id,
        image_url=image_url or None,
        is_active=is_active,
    )
    scope.db.commit()
    scope.db.refresh(item)
    logger.info("Menu item created id=%s restaurant_id=%s", item.id, scope.restaurant_id)
    return _menu_item_to_dict(item)


@router.put("/{item_id}")
def update_menu_item(
    item_id: int,
    name: Optional[str] = Form(None, min_length=2, max_length=150),
    price: Optional[float] = Form(None, gt=0),
    description: Optional[str] = Form(None),
    category_id: Optional[int] = Form(None, ge=1),
    subcategory_id: Optional[int] = Form(None, ge=1),
    is_active: Optional[bool] = Form(None),
    image_url: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    item = scope.get_or_404(MenuItem, item_id, label="Menu item")

    changes: dict[str, Any] = {}
    if name is not None:
        changes["name"] = name.strip()
    if price is not None:
        changes["price"] = Decimal(str(price))
    if description is not None:
        changes["description"] = description
    if category_id is not None:
        _ensure_category(scope, category_id)
        changes["category_id"] = category_id
    if subcategory_id is not None:
        _ensure_subcategory(scope, subcategory_id, changes.get("category_id", item.category_id))
        changes["subcategory_id"] = subcategory_id
    if is_active is not None:
        changes["is_active"] = is_active

    old_image_url = None
    if image is not None and image.filename:
        old_image_url = item.image_url
        changes["image_url"] = _upload_menu_image(image, scope.restaurant_id)
    elif image_url is not None:
        changes["image_url"] = image_url or None

    if not changes:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "No fields to update")

    scope.apply(item, changes)
    scope.db.commit()
    scope.db.refresh(item)

    if old_image_url and old_image_url != item.image_url:
        _delete_image_quietly(old_image_url, scope.restaurant_id)

    return _menu_item_to_dict(item)


@router.delete("/{item_id}")
def delete_menu_item(
    item_id: int,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    item = scope.get_or_404(MenuItem, item_id, label="Menu item")
    scope.apply(item, {"is_active": False})
    scope.db.commit()
    return {"message": "Menu item deleted successfully"}


# ---------------------------------------------------------------------------
# Staff: categories
# ---------------------------------------------------------------------------


def _next_position(query, column) -> int:
    current = query.with_entities(func.max(column)).scalar()
    return 0 if current is None else int(current) + 1


@router.post("/categories", status_code=201)
def create_category(
    payload: CategoryCreate,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    position = payload.position
    if position is None:
        position = _next_position(scope.query(Category), Category.position)

    category = scope.add(
        Category,
        name=payload.name.strip(),
        description=payload.description,
        image_url=payload.image_url,
        position=position,
    )
    scope.db.commit()
    scope.db.refresh(category)
    return _category_to_dict(category)


@router.put("/categories/reorder")
def reorder_categories(
    payload: CategoryReorder,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    ids = {entry.id for entry in payload.category_orders}
    categories = {c.id: c for c in scope.query(Category).filter(Category.id.in_(ids)).all()} if ids else {}
    missing = sorted(ids - set(categories))
    if missing:
        raise ApiError(
            status.HTTP_404_NOT_FOUND,
            "Category not found",
            f"Categories not found: {', '.join(str(i) for i in missing)}",
        )

    try:
        for entry in payload.category_orders:
            scope.apply(categories[entry.id], {"position": entry.position})
        scope.db.commit()
    except Exception:
        scope.db.rollback()
        raise

    return {"message": "Categories reordered successfully"}


@router.put("/categories/{category_id}")
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    category = scope.get_or_404(Category, category_id, label="Category")
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "No fields to update")
    scope.apply(category, changes)
    scope.db.commit()
    scope.db.refresh(category)
    return _category_to_dict(category)


@router.delete("/categories/{category_id}")
def delete_category(
    category_id: int,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    category = scope.get_or_404(Category, category_id, label="Category")
    active_items = (
        scope.query(MenuItem)
        .filter(MenuItem.category_id == category.id, MenuItem.is_active.is_(True))
        .count()
    )
    if active_items:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Cannot delete category with active menu items")

    scope.apply(category, {"is_active": False})
    scope.db.commit()
    return {"message": "Category deleted successfully"}


@router.delete("/categories/{category_id}/cascade")
def delete_category_cascade(
    category_id: int,
    _user: User = Depends(MANAGER_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    """Hard-delete a category with everything under it.

    Images go first and each failure is only logged; rows are then removed
    in one transaction: items, subcategories, category.
    """
    category = scope.get_or_404(Category, category_id, label="Category")
    items = scope.query(MenuItem).filter(MenuItem.category_id == category.id).all()
    subcategories = scope.query(Subcategory).filter(Subcategory.category_id == category.id).all()

    images_deleted = 0
    images_failed = 0
    for item in items:
        if not item.image_url:
            continue
        if _delete_image_quietly(item.image_url, scope.restaurant_id):
            images_deleted += 1
        else:
            images_failed += 1

    try:
        for item in items:
            scope.delete(item)
        scope.db.flush()
        for subcategory in subcategories:
            scope.delete(subcategory)
        scope.db.flush()
        scope.delete(category)
        scope.db.commit()
    except Exception:
        scope.db.rollback()
        raise

    logger.info(
        "Category cascade-deleted id=%s restaurant_id=%s items=%s subcategories=%s images_failed=%s",
        category_id,
        scope.restaurant_id,
        len(items),
        len(subcategories),
        images_failed,
    )
    return {
        "message": "Category and all related data deleted successfully",
        "deleted": {
            "menu_items": len(items),
            "subcategories": len(subcategories),
            "images": images_deleted,
            "images_failed": images_failed,
        },
    }


# ---------------------------------------------------------------------------
# Staff: subcategories
# ---------------------------------------------------------------------------


@router.post("/subcategories", status_code=201)
def create_subcategory(
    payload: SubcategoryCreate,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    _ensure_category(scope, payload.category_id)
    position = payload.position
    if position is None:
        siblings = scope.query(Subcategory).filter(Subcategory.category_id == payload.category_id)
        position = _next_position(siblings, Subcategory.position)

    subcategory = scope.add(
        Subcategory,
        category_id=payload.category_id,
        name=payload.name.strip(),
        description=payload.description,
        position=position,
    )
    scope.db.commit()
    scope.db.refresh(subcategory)
    return _subcategory_to_dict(subcategory)


@router.put("/subcategories/{subcategory_id}")
def update_subcategory(
    subcategory_id: int,
    payload: SubcategoryUpdate,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    subcategory = scope.get_or_404(Subcategory, subcategory_id, label="Subcategory")
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "No fields to update")
    if "category_id" in changes:
        _ensure_category(scope, changes["category_id"])
    scope.apply(subcategory, changes)
    scope.db.commit()
    scope.db.refresh(subcategory)
    return _subcategory_to_dict(subcategory)


@router.delete("/subcategories/{subcategory_id}")
def delete_subcategory(
    subcategory_id: int,
    _user: User = Depends(STAFF_ACCESS),
    scope: TenantScope = Depends(get_tenant_scope),
):
    subcategory = scope.get_or_404(Subcategory, subcategory_id, label="Subcategory")
    active_items = (
        scope.query(MenuItem)
        .filter(MenuItem.subcategory_id == subcategory.id, MenuItem.is_active.is_(True))
        .count()
    )
    if active_items:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Cannot delete subcategory with active menu items")

    scope.apply(subcategory, {"is_active": False})
    scope.db.commit()
    return {"message": "Subcategory deleted successfully"}
