from __future__ import annotations

import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps.auth import get_current_user
from src.database import get_db
from src.models.user import User
from src.services.media_service import media_service

router = APIRouter(prefix="/media", tags=["media"])


@router.get("/{media_id}/file")
async def download_media_endpoint(
    media_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> FileResponse:
    try:
        mid = uuid.UUID(media_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="Media not found")

    media = await media_service.get_media(session, mid)
    if media is None or media.user_id != user.id:
        raise HTTPException(status_code=404, detail="Media not found")

    if not Path(media.stored_path).is_file():
        raise HTTPException(status_code=404, detail="Media file not found")

    # Streamed from disk in chunks; large documents never sit in memory.
    return FileResponse(
        media.stored_path,
        media_type=media.mime_type or "application/octet-stream",
        filename=media.filename,
    )
