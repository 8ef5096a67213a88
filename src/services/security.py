from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import bcrypt
import jwt

from src.config import settings

BCRYPT_ROUNDS = 10


class TokenError(Exception):
    """Raised for any token that cannot be trusted (bad signature, expired, malformed)."""


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


def create_access_token(user_id: UUID, *, expires_in: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "userId": str(user_id),
        "iat": now,
        "exp": now + (expires_in or timedelta(days=settings.jwt_expires_days)),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> UUID:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as e:
        raise TokenError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenError("Invalid token") from e

    try:
        return UUID(str(payload["userId"]))
    except (KeyError, ValueError) as e:
        raise TokenError("Invalid token") from e
