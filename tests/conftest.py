import os

# Settings are read once at import; pin what the tests rely on before any
# src module is imported.
os.environ.setdefault("VERIFY_TOKEN", "test-verify-token")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-0123456789abcdefghij")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
# Suites share one client address; rate limit tests enable it explicitly.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from src.main import app  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="session")
def sync_dsn() -> str:
    """Synchronous (psycopg) DSN derived from async SQLAlchemy DATABASE_URL."""

    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        pytest.skip("DATABASE_URL not set; database tests need Postgres")
    return dsn.replace("postgresql+asyncpg://", "postgresql://")


@pytest.fixture(scope="session")
def migrated_db(sync_dsn: str) -> str:
    from alembic import command
    from alembic.config import Config

    command.upgrade(Config("alembic.ini"), "head")
    return sync_dsn


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture()
def clear_overrides():
    yield
    app.dependency_overrides.clear()
