"""Per-client request budgets.

Three fixed windows, keyed by client address:

- the REST API: 100 requests per 15 minutes;
- auth: 5 failed register/login attempts per 15 minutes (successes are free);
- the WhatsApp webhook: 60 requests per minute.

Exhausted budgets answer 429 with a Retry-After header, through the normal
error envelope.
"""

from __future__ import annotations

import logging
import math
import time

from fastapi import HTTPException, Request, status
from limits import RateLimitItem, RateLimitItemPerMinute
from limits.aio.strategies import FixedWindowRateLimiter
from limits.storage import storage_from_string

from src.config import settings

logger = logging.getLogger(__name__)

API_LIMIT = RateLimitItemPerMinute(100, 15)
AUTH_FAILURE_LIMIT = RateLimitItemPerMinute(5, 15)
WEBHOOK_LIMIT = RateLimitItemPerMinute(60)

TOO_MANY_REQUESTS = "Too many requests, please try again later."


class RateLimiter:
    def __init__(self, storage_uri: str, *, enabled: bool = True) -> None:
        self.enabled = enabled
        self.storage = storage_from_string(storage_uri)
        self.strategy = FixedWindowRateLimiter(self.storage)

    async def hit(self, item: RateLimitItem, *identifiers: str) -> None:
        """Consume one unit; raise 429 when the window is already spent."""

        if self.enabled and not await self.strategy.hit(item, *identifiers):
            raise await self._too_many(item, *identifiers)

    async def check(self, item: RateLimitItem, *identifiers: str) -> None:
        """Raise 429 when the window is spent, without consuming anything."""

        if self.enabled and not await self.strategy.test(item, *identifiers):
            raise await self._too_many(item, *identifiers)

    async def record(self, item: RateLimitItem, *identifiers: str) -> None:
        if self.enabled:
            await self.strategy.hit(item, *identifiers)

    async def _too_many(self, item: RateLimitItem, *identifiers: str) -> HTTPException:
        window = await self.strategy.get_window_stats(item, *identifiers)
        retry_after = max(1, math.ceil(window.reset_time - time.time()))
        logger.warning("rate_limited scope=%s retry_after=%s", ":".join(identifiers), retry_after)
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=TOO_MANY_REQUESTS,
            headers={"Retry-After": str(retry_after)},
        )


rate_limiter = RateLimiter(settings.rate_limit_storage_uri, enabled=settings.rate_limit_enabled)


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def limit(item: RateLimitItem, scope: str):
    """Router dependency charging every request against ``item``."""

    async def _dependency(request: Request) -> None:
        await rate_limiter.hit(item, scope, client_key(request))

    return _dependency


class FailureBudget:
    """Handed to auth handlers, which report failed attempts to it."""

    def __init__(self, key: str) -> None:
        self.key = key

    async def record_failure(self) -> None:
        await rate_limiter.record(AUTH_FAILURE_LIMIT, "auth", self.key)


async def auth_failure_budget(request: Request) -> FailureBudget:
    key = client_key(request)
    await rate_limiter.check(AUTH_FAILURE_LIMIT, "auth", key)
    return FailureBudget(key)
