from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps.auth import get_current_user
from src.api.rate_limit import FailureBudget, auth_failure_budget
from src.crud.user import get_user_by_email, get_user_by_phone, user_crud
from src.database import get_db
from src.models.user import User
from src.schemas.user import (
    AuthResponse,
    LoginRequest,
    ProfileRead,
    ProfileUpdate,
    RegisterRequest,
    UserRead,
)
from src.services.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _invalid_credentials(detail: str = "Invalid credentials") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_endpoint(
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_db),
    budget: FailureBudget = Depends(auth_failure_budget),
) -> AuthResponse:
    if await get_user_by_phone(session, phone_number=payload.phone_number) is not None:
        await budget.record_failure()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")

    if payload.email and await get_user_by_email(session, email=payload.email) is not None:
        await budget.record_failure()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")

    # bcrypt blocks for tens of milliseconds per call.
    password_hash = await run_in_threadpool(hash_password, payload.password) if payload.password else None

    user = await user_crud.create(
        session,
        obj_in={
            "phone_number": payload.phone_number,
            "name": payload.name,
            "email": payload.email,
            "password_hash": password_hash,
            "is_active": True,
        },
    )
    await session.commit()

    logger.info("user_registered user_id=%s", user.id)
    return AuthResponse(user=UserRead.model_validate(user), token=create_access_token(user.id))


@router.post("/login", response_model=AuthResponse)
async def login_endpoint(
    payload: LoginRequest,
    session: AsyncSession = Depends(get_db),
    budget: FailureBudget = Depends(auth_failure_budget),
) -> AuthResponse:
    user = await get_user_by_phone(session, phone_number=payload.phone_number)
    if user is None:
        await budget.record_failure()
        raise _invalid_credentials()

    if not user.is_active:
        await budget.record_failure()
        raise _invalid_credentials("Account is inactive")

    # Users created from WhatsApp have no password yet.
    if user.password_hash and not await run_in_threadpool(verify_password, payload.password, user.password_hash):
        await budget.record_failure()
        raise _invalid_credentials()

    await user_crud.update(session, db_obj=user, obj_in={"last_seen_at": datetime.now(timezone.utc)})
    await session.commit()

    logger.info("user_logged_in user_id=%s", user.id)
    return AuthResponse(user=UserRead.model_validate(user), token=create_access_token(user.id))


@router.get("/profile", response_model=ProfileRead)
async def get_profile_endpoint(user: User = Depends(get_current_user)) -> ProfileRead:
    return ProfileRead.model_validate(user)


@router.put("/profile", response_model=ProfileRead)
async def update_profile_endpoint(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> ProfileRead:
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v}

    if changes.get("email") and changes["email"] != user.email:
        if await get_user_by_email(session, email=changes["email"]) is not None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")

    if changes:
        await user_crud.update(session, db_obj=user, obj_in=changes)
        await session.commit()
        await session.refresh(user)

    logger.info("profile_updated user_id=%s fields=%s", user.id, sorted(changes))
    return ProfileRead.model_validate(user)
