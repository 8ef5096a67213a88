from __future__ import annotations

from collections.abc import AsyncGenerator
import os
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from src.config import settings


def create_session_factory(*, null_pool: bool = False) -> async_sessionmaker[AsyncSession]:
    engine_kwargs: dict = {"pool_pre_ping": True}
    if null_pool:
        engine_kwargs["poolclass"] = NullPool

    engine = create_async_engine(settings.database_url, **engine_kwargs)
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


# NOTE: FastAPI's sync TestClient can run requests across different event
# loops, and asyncpg connections in a pooled engine may be reused across
# loops ("got Future attached to a different loop"). Disable pooling under
# pytest. PYTEST_CURRENT_TEST is only set while a test is running, so check
# sys.modules as well for collection-time imports.
_under_pytest = bool(os.getenv("PYTEST_CURRENT_TEST") or ("pytest" in sys.modules))

SessionLocal = create_session_factory(null_pool=_under_pytest)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session
