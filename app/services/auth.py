from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import jwt

from app.core.config import JWT_ALGORITHM, JWT_EXPIRE_MINUTES, JWT_SECRET_KEY


# =========================
# PASSWORD (bcrypt)
# =========================
def _normalize_password_for_bcrypt(password: str) -> bytes:
    """
    bcrypt only considers the first 72 bytes.
    Longer passwords are truncated instead of crashing.
    """
    pw = (password or "").encode("utf-8")
    if len(pw) <= 72:
        return pw
    return pw[:72]


def hash_password(password: str) -> str:
    pw = _normalize_password_for_bcrypt(password)
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pw, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        pw = _normalize_password_for_bcrypt(plain_password)
        ph = (password_hash or "").encode("utf-8")
        return bcrypt.checkpw(pw, ph)
    except ValueError:
        return False


# =========================
# JWT HELPERS
# =========================
def create_access_token(
    user_id: int | str,
    extra: Optional[Dict[str, Any]] = None,
    expires_minutes: int = JWT_EXPIRE_MINUTES,
) -> str:
    """
    "sub" must be a string for python-jose; "user_id" is kept alongside it.
    """
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=expires_minutes)

    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "user_id": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    if extra:
        payload.update(extra)

    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def create_user_token(user, restaurant) -> str:
    return create_access_token(
        user.id,
        extra={
            "role": user.role,
            "restaurant_id": restaurant.id,
            "restaurant_slug": restaurant.slug,
            "restaurant_name": restaurant.name,
        },
    )


def decode_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Returns the JWT payload or raises ValueError when invalid or expired.
    """
    try:
        return decode_token(token)
    except Exception as e:
        raise ValueError("Invalid or expired token") from e


def extract_user_id(payload: Dict[str, Any]) -> Optional[int]:
    """Accepts ``sub`` (JWT standard) or ``user_id``, as int or numeric string."""
    raw = payload.get("sub", None)
    if raw is None:
        raw = payload.get("user_id", None)

    if raw is None:
        return None

    if isinstance(raw, int):
        return raw

    if isinstance(raw, str):
        raw = raw.strip()
        if raw.isdigit():
            return int(raw)

    return None
