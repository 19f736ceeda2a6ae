from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from app.core.errors import ApiError
from app.deps import get_restaurant_context, require_role
from app.models.user import User
from app.services import storage
from app.services.tenant_context import RestaurantContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/upload", tags=["upload"])

STAFF_ACCESS = require_role("staff")


def _storage_unavailable(exc: Exception) -> ApiError:
    return ApiError(status.HTTP_503_SERVICE_UNAVAILABLE, "Storage not configured", str(exc))


@router.post("/image")
def upload_image(
    image: UploadFile = File(...),
    _user: User = Depends(STAFF_ACCESS),
    context: RestaurantContext = Depends(get_restaurant_context),
):
    try:
        stored = storage.upload_image(image, context.restaurant_id)
    except HTTPException:
        raise
    except storage.StorageNotConfigured as exc:
        raise _storage_unavailable(exc) from exc
    except Exception as exc:
        logger.exception("Image upload failed restaurant_id=%s", context.restaurant_id)
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Upload failed", "Failed to upload image") from exc

    return {
        "message": "Image uploaded successfully",
        "imageUrl": stored["url"],
        "key": stored["key"],
        "originalName": image.filename,
        "contentType": image.content_type,
    }


@router.delete("/image/{key:path}")
def delete_image(
    key: str,
    _user: User = Depends(STAFF_ACCESS),
    context: RestaurantContext = Depends(get_restaurant_context),
):
    object_key = storage.key_from_url(key)
    if not object_key.startswith(storage.tenant_image_prefix(context.restaurant_id)):
        raise ApiError(status.HTTP_403_FORBIDDEN, "Access denied", "Image does not belong to this restaurant")

    try:
        storage.delete_image(object_key, context.restaurant_id)
    except storage.StorageNotConfigured as exc:
        raise _storage_unavailable(exc) from exc
    except Exception as exc:
        logger.exception("Image deletion failed restaurant_id=%s key=%s", context.restaurant_id, object_key)
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Delete failed", "Failed to delete image") from exc

    return {"message": "Image deleted successfully", "key": object_key}
