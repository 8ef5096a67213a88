from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.crud.base import BaseCRUD
from src.models.message import Message

message_crud: BaseCRUD[Message] = BaseCRUD(Message)


async def get_message_by_whatsapp_id(session: AsyncSession, *, whatsapp_message_id: str) -> Message | None:
    res = await session.execute(select(Message).where(Message.whatsapp_message_id == whatsapp_message_id))
    return res.scalar_one_or_none()


async def get_recent_processed_messages(
    session: AsyncSession,
    *,
    session_id: UUID,
    limit: int = 10,
) -> list[Message]:
    """Last ``limit`` processed messages of a session in chronological order."""

    stmt = (
        select(Message)
        .where(Message.session_id == session_id, Message.is_processed.is_(True))
        .order_by(Message.created_at.desc())
        .limit(limit)
    )
    res = await session.execute(stmt)
    return list(reversed(res.scalars().all()))


async def list_session_messages(session: AsyncSession, *, session_id: UUID) -> list[Message]:
    stmt = select(Message).where(Message.session_id == session_id).order_by(Message.created_at.asc())
    res = await session.execute(stmt)
    return list(res.scalars().all())
