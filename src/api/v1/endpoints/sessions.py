from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps.auth import get_current_user
from src.crud.artifact import artifact_crud, list_session_artifacts
from src.crud.chat_session import get_latest_messages, get_user_session, list_sessions, session_crud
from src.crud.media import list_media_for_messages, media_crud
from src.crud.message import list_session_messages, message_crud
from src.database import get_db
from src.models.chat_session import ChatSession
from src.models.user import User
from src.schemas.artifact import ArtifactRead
from src.schemas.chat_session import (
    SessionCreate,
    SessionDetail,
    SessionListItem,
    SessionListResponse,
    SessionRead,
    SessionStats,
    SessionStatsCounts,
    SessionStatus,
    SessionUpdate,
)
from src.schemas.message import MediaRead, MessageRead, MessageWithMediaRead

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


async def get_owned_session(session_id: str, user: User, session: AsyncSession) -> ChatSession:
    try:
        # Malformed ids are indistinguishable from missing ones for the caller.
        sid = uuid.UUID(session_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="Session not found")

    chat = await get_user_session(session, session_id=sid, user_id=user.id)
    if chat is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return chat


@router.get("", response_model=SessionListResponse)
async def list_sessions_endpoint(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    status: SessionStatus | None = Query(None, description="active | completed | archived"),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> SessionListResponse:
    items, total = await list_sessions(session, user_id=user.id, status=status, limit=limit, offset=offset)
    latest = await get_latest_messages(session, session_ids=[s.id for s in items])

    sessions = []
    for chat in items:
        payload = SessionRead.model_validate(chat).model_dump()
        payload["messages"] = [MessageRead.model_validate(m) for m in latest.get(chat.id, [])]
        sessions.append(SessionListItem(**payload))

    return SessionListResponse(total=total, sessions=sessions)


@router.post("", response_model=SessionRead, status_code=201)
async def create_session_endpoint(
    payload: SessionCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> SessionRead:
    now = datetime.now(timezone.utc)
    chat = await session_crud.create(
        session,
        obj_in={
            "title": payload.title or f"Session {now.isoformat()}",
            "description": payload.description,
            "type": payload.type,
            "status": "active",
            "started_at": now,
        },
        user_id=user.id,
    )
    await session.commit()

    logger.info("session_created session_id=%s user_id=%s", chat.id, user.id)
    return SessionRead.model_validate(chat)


@router.get("/{session_id}", response_model=SessionDetail)
async def get_session_endpoint(
    session_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> SessionDetail:
    chat = await get_owned_session(session_id, user, session)

    messages = await list_session_messages(session, session_id=chat.id)
    media = await list_media_for_messages(session, message_ids=[m.id for m in messages])
    artifacts = await list_session_artifacts(session, session_id=chat.id)

    payload = SessionRead.model_validate(chat).model_dump()
    payload["messages"] = [
        MessageWithMediaRead(
            **MessageRead.model_validate(m).model_dump(),
            media=[MediaRead.model_validate(x) for x in media.get(m.id, [])],
        )
        for m in messages
    ]
    payload["artifacts"] = [ArtifactRead.model_validate(a) for a in artifacts]
    return SessionDetail(**payload)


@router.put("/{session_id}", response_model=SessionRead)
async def update_session_endpoint(
    session_id: str,
    payload: SessionUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> SessionRead:
    chat = await get_owned_session(session_id, user, session)

    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v}
    if changes.get("status") == "completed":
        changes["completed_at"] = datetime.now(timezone.utc)

    if changes:
        await session_crud.update(session, db_obj=chat, obj_in=changes)
        await session.commit()

    logger.info("session_updated session_id=%s fields=%s", chat.id, sorted(changes))
    return SessionRead.model_validate(chat)


@router.delete("/{session_id}")
async def archive_session_endpoint(
    session_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> dict:
    """Archive (soft-delete) a session."""

    chat = await get_owned_session(session_id, user, session)
    await session_crud.update(session, db_obj=chat, obj_in={"status": "archived"})
    await session.commit()

    logger.info("session_archived session_id=%s", chat.id)
    return {"message": "Session archived successfully"}


@router.get("/{session_id}/stats", response_model=SessionStats)
async def session_stats_endpoint(
    session_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> SessionStats:
    chat = await get_owned_session(session_id, user, session)

    scope = {"session_id": chat.id}
    messages = await message_crud.count(session, filters=scope)
    media = await media_crud.count(session, filters=scope)
    artifacts = await artifact_crud.count(session, filters=scope)

    end = chat.completed_at or datetime.now(timezone.utc)
    duration_ms = int((end - chat.started_at).total_seconds() * 1000)

    return SessionStats(
        session_id=chat.id,
        stats=SessionStatsCounts(messages=messages, media=media, artifacts=artifacts, duration=duration_ms),
    )
