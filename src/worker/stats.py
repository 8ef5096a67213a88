from __future__ import annotations

from functools import lru_cache

import redis

from src.config import settings

KEY_PREFIX = "wa_assistant:queue"
OUTCOMES = ("completed", "failed")


@lru_cache(maxsize=1)
def get_redis() -> redis.Redis:
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


def _key(queue: str, outcome: str) -> str:
    return f"{KEY_PREFIX}:{queue}:{outcome}"


def record_outcome(queue: str, outcome: str) -> None:
    get_redis().incr(_key(queue, outcome))


def read_outcomes(queue: str) -> dict[str, int]:
    values = get_redis().mget([_key(queue, o) for o in OUTCOMES])
    return {o: int(v or 0) for o, v in zip(OUTCOMES, values)}
