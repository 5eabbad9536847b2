from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError

from cellreports.core.config import settings

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 30


def create_access_token(
    data: dict, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Sign an access token.

    ``data`` should carry ``sub`` (user id), ``account_id`` and ``role``.
    UUID values are stringified before encoding.
    """
    to_encode = {k: str(v) if v is not None else None for k, v in data.items()}
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        default_expire = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
        expire = datetime.now(timezone.utc) + default_expire
    to_encode.update({
        "exp": expire,
        "type": "access",
        "nonce": secrets.token_urlsafe(16),
    })
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[JWT_ALGORITHM]
        )
        return payload
    except JWTError:
        return None
