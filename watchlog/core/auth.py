from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Header, HTTPException

from watchlog.config import JWT_ALGORITHM, JWT_EXPIRES_DAYS, JWT_SECRET

logger = logging.getLogger(__name__)

_HASH_SCHEME = "pbkdf2_sha256"
_ITERATIONS = 260_000


def hash_password(password: str, *, iterations: int = _ITERATIONS) -> str:
    salt = os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return "$".join(
        (
            _HASH_SCHEME,
            str(iterations),
            base64.b64encode(salt).decode("ascii"),
            base64.b64encode(digest).decode("ascii"),
        )
    )


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, raw_iterations, raw_salt, raw_digest = stored.split("$")
        iterations = int(raw_iterations)
        salt = base64.b64decode(raw_salt)
        expected = base64.b64decode(raw_digest)
    except (AttributeError, ValueError):
        return False
    if scheme != _HASH_SCHEME:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return hmac.compare_digest(digest, expected)


def _require_secret() -> str:
    if not JWT_SECRET:
        raise HTTPException(
            status_code=500, detail="Server misconfigured: JWT_SECRET missing"
        )
    return JWT_SECRET


def create_access_token(user_id: int) -> str:
    expires = datetime.now(timezone.utc) + timedelta(days=JWT_EXPIRES_DAYS)
    claims = {"sub": str(user_id), "exp": expires}
    return jwt.encode(claims, _require_secret(), algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    secret = _require_secret()
    try:
        claims = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
        return int(claims["sub"])
    except (jwt.PyJWTError, KeyError, TypeError, ValueError) as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise HTTPException(
            status_code=401, detail="Not authorized, token failed"
        ) from exc


def _bearer_token(authorization: Optional[str]) -> str:
    raw = (authorization or "").strip()
    if raw.lower().startswith("bearer "):
        return raw.split(" ", 1)[1].strip()
    return ""


def get_current_user_id(authorization: Optional[str] = Header(default=None)) -> int:
    """Resolve the caller's user id from ``Authorization: Bearer <jwt>``."""
    token = _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    return decode_access_token(token)
