from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.crud.chat_session import (
    find_active_daily_session,
    find_latest_active_session,
    get_latest_messages,
    list_sessions,
    session_crud,
)
from src.crud.message import message_crud
from src.crud.user import get_user_by_phone, user_crud
from src.models.chat_session import ChatSession
from src.models.message import Message
from src.models.user import User

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


async def get_or_create_user(session: AsyncSession, phone_number: str) -> User:
    user = await get_user_by_phone(session, phone_number=phone_number)
    now = _utcnow()

    if user is None:
        user = await user_crud.create(
            session,
            obj_in={"phone_number": phone_number, "is_active": True, "last_seen_at": now},
        )
        logger.info("user_created phone_number=%s user_id=%s", phone_number, user.id)
    else:
        await user_crud.update(session, db_obj=user, obj_in={"last_seen_at": now})

    await session.commit()
    return user


async def get_or_create_session(session: AsyncSession, user_id: UUID, session_type: str = "daily") -> ChatSession:
    """Daily sessions roll over at midnight UTC; other types reuse the most
    recent active session."""

    now = _utcnow()

    if session_type == "daily":
        today = start_of_day(now)
        chat = await find_active_daily_session(session, user_id=user_id, since=today)
        title = f"Session {today.date().isoformat()}"
    else:
        chat = await find_latest_active_session(session, user_id=user_id)
        title = f"Session {now.isoformat()}"

    if chat is not None:
        return chat

    chat = await session_crud.create(
        session,
        obj_in={
            "user_id": user_id,
            "type": session_type,
            "status": "active",
            "title": title,
            "started_at": now,
        },
    )
    await session.commit()
    logger.info("session_created user_id=%s session_id=%s type=%s", user_id, chat.id, session_type)
    return chat


async def save_message(session: AsyncSession, **data: Any) -> Message:
    message = await message_crud.create(session, obj_in=data)
    await session.commit()
    logger.info("message_saved message_id=%s direction=%s", message.id, message.direction)
    return message


async def update_message_status(
    session: AsyncSession,
    message_id: UUID,
    status: str,
    **extra: Any,
) -> Message | None:
    message = await message_crud.get(session, id=message_id)
    if message is None:
        return None

    await message_crud.update(session, db_obj=message, obj_in={"status": status, **extra})
    await session.commit()
    logger.info("message_status_updated message_id=%s status=%s", message_id, status)
    return message


async def mark_processed(session: AsyncSession, message_id: UUID) -> None:
    message = await message_crud.get(session, id=message_id)
    if message is None:
        return

    await message_crud.update(session, db_obj=message, obj_in={"is_processed": True})
    await session.commit()


async def get_session_history(
    session: AsyncSession,
    user_id: UUID,
    limit: int = 10,
) -> list[tuple[ChatSession, list[Message]]]:
    """Most recent sessions of a user, each with its five newest messages."""

    sessions, _ = await list_sessions(session, user_id=user_id, limit=limit)
    latest = await get_latest_messages(session, session_ids=[s.id for s in sessions])
    return [(chat, latest.get(chat.id, [])) for chat in sessions]
