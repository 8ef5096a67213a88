from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.crud.user import get_user
from src.database import get_db
from src.models.user import User
from src.services.security import TokenError, decode_access_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db),
) -> User:
    """Resolve ``Authorization: Bearer <jwt>`` to an active user or 401."""

    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("No token provided")

    try:
        user_id = decode_access_token(credentials.credentials)
    except TokenError as e:
        logger.warning("auth_token_rejected reason=%s", e)
        raise _unauthorized(str(e))

    user = await get_user(session, user_id=user_id)
    if user is None or not user.is_active:
        raise _unauthorized("Invalid token or user not active")

    return user
