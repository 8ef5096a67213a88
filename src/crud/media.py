from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.crud.base import BaseCRUD
from src.models.media import Media

media_crud: BaseCRUD[Media] = BaseCRUD(Media)


async def get_media(session: AsyncSession, *, media_id: UUID) -> Media | None:
    return await media_crud.get(session, id=media_id)


async def list_media_for_messages(session: AsyncSession, *, message_ids: list[UUID]) -> dict[UUID, list[Media]]:
    if not message_ids:
        return {}

    stmt = select(Media).where(Media.message_id.in_(message_ids)).order_by(Media.created_at.asc())
    res = await session.execute(stmt)

    grouped: dict[UUID, list[Media]] = {}
    for media in res.scalars().all():
        grouped.setdefault(media.message_id, []).append(media)
    return grouped
