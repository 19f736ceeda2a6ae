from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlparse
from uuid import uuid4

from fastapi import UploadFile, status

from app.core.config import (
    MAX_UPLOAD_BYTES,
    STORAGE_ACCESS_KEY_ID,
    STORAGE_BUCKET_NAME,
    STORAGE_ENDPOINT_URL,
    STORAGE_PUBLIC_URL,
    STORAGE_REGION,
    STORAGE_SECRET_ACCESS_KEY,
)
from app.core.errors import ApiError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}


class StorageNotConfigured(RuntimeError):
    pass


def _require(name: str, value: str) -> str:
    if not value:
        raise StorageNotConfigured(f"Missing required storage setting: {name}")
    return value


def _get_client():
    import boto3

    return boto3.client(
        "s3",
        endpoint_url=STORAGE_ENDPOINT_URL or None,
        aws_access_key_id=_require("STORAGE_ACCESS_KEY_ID", STORAGE_ACCESS_KEY_ID),
        aws_secret_access_key=_require("STORAGE_SECRET_ACCESS_KEY", STORAGE_SECRET_ACCESS_KEY),
        region_name=STORAGE_REGION or "auto",
    )


def tenant_image_prefix(restaurant_id: int) -> str:
    return f"restaurants/{int(restaurant_id)}/menu-images/"


def key_from_url(url_or_key: str) -> str:
    """Object key for a stored image, given either its public URL or the key itself."""
    value = (url_or_key or "").strip()
    if not value:
        return ""
    if STORAGE_PUBLIC_URL and value.startswith(STORAGE_PUBLIC_URL + "/"):
        return value[len(STORAGE_PUBLIC_URL) + 1 :]
    if value.startswith(("http://", "https://")):
        return urlparse(value).path.lstrip("/")
    return value.lstrip("/")


def validate_image(file: UploadFile) -> bytes:
    if not file.filename:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "No file provided")

    content_type = (file.content_type or "").lower()
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "Invalid file type",
            "Only JPEG, PNG, GIF and WebP images are allowed",
        )

    file.file.seek(0)
    data = file.file.read(MAX_UPLOAD_BYTES + 1)
    if len(data) > MAX_UPLOAD_BYTES:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "File too large",
            f"Images must be at most {MAX_UPLOAD_BYTES // (1024 * 1024)}MB",
        )
    file.file.seek(0)
    return data


def upload_image(file: UploadFile, restaurant_id: int) -> dict[str, str]:
    bucket = _require("STORAGE_BUCKET_NAME", STORAGE_BUCKET_NAME)
    public_url = _require("STORAGE_PUBLIC_URL", STORAGE_PUBLIC_URL)

    validate_image(file)

    extension = Path(file.filename or "").suffix.lower()
    key = f"{tenant_image_prefix(restaurant_id)}{uuid4().hex}{extension}"

    file.file.seek(0)
    _get_client().upload_fileobj(
        file.file,
        bucket,
        key,
        ExtraArgs={"ContentType": file.content_type or "application/octet-stream"},
    )
    logger.info("Image uploaded restaurant_id=%s key=%s", restaurant_id, key)

    return {"url": f"{public_url}/{key}", "key": key}


def delete_image(url_or_key: str, restaurant_id: int) -> bool:
    """Remove an image owned by ``restaurant_id``.

    Keys outside the restaurant's prefix are refused; returns False when
    nothing was deleted.
    """
    key = key_from_url(url_or_key)
    if not key:
        return False
    if not key.startswith(tenant_image_prefix(restaurant_id)):
        logger.warning("Refusing to delete foreign image restaurant_id=%s key=%s", restaurant_id, key)
        return False

    bucket = _require("STORAGE_BUCKET_NAME", STORAGE_BUCKET_NAME)
    _get_client().delete_object(Bucket=bucket, Key=key)
    logger.info("Image deleted restaurant_id=%s key=%s", restaurant_id, key)
    return True
