from __future__ import annotations

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.crud.base import BaseCRUD
from src.models.artifact import Artifact

artifact_crud: BaseCRUD[Artifact] = BaseCRUD(Artifact)


async def list_session_artifacts(session: AsyncSession, *, session_id: UUID) -> list[Artifact]:
    return await artifact_crud.get_multi(
        session,
        filters={"session_id": session_id},
        limit=1000,
        order_by=Artifact.created_at.asc(),
    )
