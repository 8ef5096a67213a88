import pytest

from tests._client import get_async_client


@pytest.mark.anyio
async def test_health_check():
    async with get_async_client() as client:
        r = await client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"


@pytest.mark.anyio
async def test_api_health_reports_uptime_and_timestamp():
    async with get_async_client() as client:
        r = await client.get("/api/health")
        assert r.status_code == 200

        body = r.json()
        assert body["status"] == "ok"
        assert body["uptime"] >= 0
        assert body["timestamp"]


@pytest.mark.anyio
async def test_root_returns_service_info():
    async with get_async_client() as client:
        r = await client.get("/")
        assert r.status_code == 200

        body = r.json()
        assert body["name"] == "WhatsApp AI Assistant"
        assert body["version"] == "1.0.0"
        assert body["status"] == "running"


@pytest.mark.anyio
async def test_no_ping_route_under_the_api():
    async with get_async_client() as client:
        r = await client.get("/api/v1/ping")
        assert r.status_code == 404
