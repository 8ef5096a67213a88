from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


TModel = TypeVar("TModel")


def _to_dict(obj: Any, *, exclude_unset: bool = True) -> dict[str, Any]:
    """Best-effort conversion for Pydantic models / plain dict payloads."""

    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    if isinstance(obj, BaseModel):
        return obj.model_dump(exclude_unset=exclude_unset)
    return dict(vars(obj))


class BaseCRUD(Generic[TModel]):
    """Generic CRUD helper for SQLAlchemy (async).

    Notes:
    - Methods do NOT commit. Callers control transaction boundaries.
    - Owner filtering is opt-in via the user_id parameter.
    """

    def __init__(self, model: type[TModel], *, owner_field: str = "user_id") -> None:
        self.model = model
        self.owner_field = owner_field

    def _scoped(self, q, user_id: Any | None):
        if user_id is not None and hasattr(self.model, self.owner_field):
            q = q.where(getattr(self.model, self.owner_field) == user_id)
        return q

    def _filtered(self, q, filters: dict[str, Any] | None):
        for key, value in (filters or {}).items():
            if value is None or not hasattr(self.model, key):
                continue
            q = q.where(getattr(self.model, key) == value)
        return q

    async def create(self, session: AsyncSession, *, obj_in: Any, user_id: Any | None = None) -> TModel:
        data = dict(_to_dict(obj_in))
        if user_id is not None and self.owner_field not in data:
            data[self.owner_field] = user_id

        db_obj = self.model(**data)  # type: ignore[call-arg]
        session.add(db_obj)
        await session.flush()
        return db_obj

    async def get(self, session: AsyncSession, *, id: Any, user_id: Any | None = None) -> TModel | None:
        q = select(self.model).where(getattr(self.model, "id") == id)
        q = self._scoped(q, user_id)

        r = await session.execute(q)
        return r.scalar_one_or_none()

    async def get_multi(
        self,
        session: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 100,
        user_id: Any | None = None,
        filters: dict[str, Any] | None = None,
        order_by: Any | None = None,
    ) -> list[TModel]:
        q = self._filtered(self._scoped(select(self.model), user_id), filters)
        if order_by is not None:
            q = q.order_by(order_by)

        q = q.offset(max(skip, 0)).limit(max(1, limit))
        r = await session.execute(q)
        return list(r.scalars().all())

    async def count(
        self,
        session: AsyncSession,
        *,
        user_id: Any | None = None,
        filters: dict[str, Any] | None = None,
    ) -> int:
        q = self._filtered(self._scoped(select(func.count()).select_from(self.model), user_id), filters)
        r = await session.execute(q)
        return int(r.scalar_one())

    async def update(self, session: AsyncSession, *, db_obj: TModel, obj_in: Any) -> TModel:
        data = _to_dict(obj_in)

        for field, value in data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        session.add(db_obj)  # no-op for persistent objects, safe for detached
        await session.flush()
        return db_obj
