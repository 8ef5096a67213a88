from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.crud.media import get_media, media_crud
from src.models.media import Media
from src.services.whatsapp_service import WhatsAppService, whatsapp_service

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = (300, 300)

MIME_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "video/mp4": "mp4",
    "video/3gpp": "3gp",
    "audio/aac": "aac",
    "audio/mp4": "m4a",
    "audio/mpeg": "mp3",
    "audio/amr": "amr",
    "audio/ogg": "ogg",
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
}


def extension_for_mime_type(mime_type: str | None) -> str:
    # WhatsApp sends e.g. "audio/ogg; codecs=opus"
    base = (mime_type or "").split(";", 1)[0].strip().lower()
    return MIME_EXTENSIONS.get(base, "bin")


def thumbnail_path_for(file_path: Path) -> Path:
    return file_path.with_name(f"{file_path.stem}_thumb{file_path.suffix}")


def make_thumbnail(file_path: Path) -> Path:
    thumb = thumbnail_path_for(file_path)
    with Image.open(file_path) as img:
        img.thumbnail(THUMBNAIL_SIZE)
        img.save(thumb)
    return thumb


@dataclass(frozen=True)
class MediaFile:
    data: bytes
    mime_type: str | None
    filename: str


class MediaService:
    def __init__(self, *, whatsapp: WhatsAppService | None = None, upload_dir: str | Path | None = None) -> None:
        self.whatsapp = whatsapp or whatsapp_service
        self.upload_dir = Path(upload_dir or settings.upload_dir)

    async def download_and_save(
        self,
        session: AsyncSession,
        *,
        whatsapp_media_id: str,
        message_id: UUID,
        user_id: UUID,
        session_id: UUID,
        media_type: str,
    ) -> Media:
        downloaded = await self.whatsapp.download_media(whatsapp_media_id)

        self.upload_dir.mkdir(parents=True, exist_ok=True)
        filename = f"{uuid.uuid4()}.{extension_for_mime_type(downloaded.mime_type)}"
        file_path = self.upload_dir / filename
        await asyncio.to_thread(file_path.write_bytes, downloaded.data)
        logger.info("media_saved filename=%s size=%s", filename, downloaded.size)

        media = await media_crud.create(
            session,
            obj_in={
                "message_id": message_id,
                "user_id": user_id,
                "session_id": session_id,
                "type": media_type,
                "stored_path": str(file_path),
                "filename": filename,
                "mime_type": downloaded.mime_type,
                "size": downloaded.size,
                "meta": {"whatsapp_media_id": whatsapp_media_id},
                "is_processed": False,
            },
        )

        if media_type == "image":
            await self.process_image(session, media)

        await session.commit()
        return media

    async def process_image(self, session: AsyncSession, media: Media) -> None:
        """Attach a thumbnail. Failures are logged and leave the row untouched."""

        try:
            thumb = await asyncio.to_thread(make_thumbnail, Path(media.stored_path))
        except Exception:
            logger.exception("thumbnail_failed media_id=%s", media.id)
            return

        await media_crud.update(
            session,
            db_obj=media,
            obj_in={"meta": {**(media.meta or {}), "thumbnail_path": str(thumb)}},
        )
        logger.info("thumbnail_created media_id=%s", media.id)

    async def get_media(self, session: AsyncSession, media_id: UUID) -> Media | None:
        return await get_media(session, media_id=media_id)

    async def get_media_file(self, session: AsyncSession, media_id: UUID) -> MediaFile:
        media = await self.get_media(session, media_id)
        if media is None:
            raise LookupError("Media not found")

        data = await asyncio.to_thread(Path(media.stored_path).read_bytes)
        return MediaFile(data=data, mime_type=media.mime_type, filename=media.filename)


media_service = MediaService()
