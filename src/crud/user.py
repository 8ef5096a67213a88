from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.crud.base import BaseCRUD
from src.models.user import User

# Users own themselves; scoping by "id" keeps BaseCRUD's owner filter meaningful.
user_crud: BaseCRUD[User] = BaseCRUD(User, owner_field="id")


async def get_user(session: AsyncSession, *, user_id) -> User | None:
    return await user_crud.get(session, id=user_id)


async def get_user_by_phone(session: AsyncSession, *, phone_number: str) -> User | None:
    res = await session.execute(select(User).where(User.phone_number == phone_number))
    return res.scalar_one_or_none()


async def get_user_by_email(session: AsyncSession, *, email: str) -> User | None:
    res = await session.execute(select(User).where(User.email == email))
    return res.scalar_one_or_none()
