# storechat/auth.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from .config import settings


def create_token(customer_id: str, expire_minutes: Optional[int] = None) -> str:
    minutes = settings.jwt_expire_min if expire_minutes is None else expire_minutes
    exp = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload = {"sub": str(customer_id), "exp": exp}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)


def decode_token(token: str) -> Optional[str]:
    """Customer id from a Bearer token, or None if it is invalid/expired."""
    try:
        data = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
    except JWTError:
        return None
    sub = str(data.get("sub") or "").strip()
    return sub or None
