from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.crud.base import BaseCRUD
from src.models.chat_session import ChatSession
from src.models.message import Message

session_crud: BaseCRUD[ChatSession] = BaseCRUD(ChatSession)


async def get_user_session(session: AsyncSession, *, session_id: UUID, user_id: UUID) -> ChatSession | None:
    return await session_crud.get(session, id=session_id, user_id=user_id)


async def find_active_daily_session(
    session: AsyncSession,
    *,
    user_id: UUID,
    since: datetime,
) -> ChatSession | None:
    stmt = (
        select(ChatSession)
        .where(
            ChatSession.user_id == user_id,
            ChatSession.type == "daily",
            ChatSession.status == "active",
            ChatSession.started_at >= since,
        )
        .order_by(ChatSession.started_at.desc())
        .limit(1)
    )
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def find_latest_active_session(session: AsyncSession, *, user_id: UUID) -> ChatSession | None:
    stmt = (
        select(ChatSession)
        .where(ChatSession.user_id == user_id, ChatSession.status == "active")
        .order_by(ChatSession.created_at.desc())
        .limit(1)
    )
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def list_sessions(
    session: AsyncSession,
    *,
    user_id: UUID,
    status: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[ChatSession], int]:
    filters = {"status": status}
    total = await session_crud.count(session, user_id=user_id, filters=filters)
    items = await session_crud.get_multi(
        session,
        user_id=user_id,
        filters=filters,
        skip=offset,
        limit=limit,
        order_by=ChatSession.created_at.desc(),
    )
    return items, total


async def get_latest_messages(
    session: AsyncSession,
    *,
    session_ids: list[UUID],
    per_session: int = 5,
) -> dict[UUID, list[Message]]:
    """Newest ``per_session`` messages for each session, newest first."""

    if not session_ids:
        return {}

    rn = (
        func.row_number()
        .over(partition_by=Message.session_id, order_by=Message.created_at.desc())
        .label("rn")
    )
    ranked = select(Message.id, rn).where(Message.session_id.in_(session_ids)).subquery()
    stmt = (
        select(Message)
        .join(ranked, ranked.c.id == Message.id)
        .where(ranked.c.rn <= per_session)
        .order_by(Message.session_id, Message.created_at.desc())
    )
    res = await session.execute(stmt)

    grouped: dict[UUID, list[Message]] = {sid: [] for sid in session_ids}
    for msg in res.scalars().all():
        grouped.setdefault(msg.session_id, []).append(msg)
    return grouped
