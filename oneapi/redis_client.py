"""
Redis access for the channel cache.

`redis.asyncio` connections belong to the event loop that opened them, so one
client is kept per running loop.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any
from weakref import WeakKeyDictionary

from fastapi.encoders import jsonable_encoder
from redis.asyncio import Redis

from .settings import settings

_clients: WeakKeyDictionary[asyncio.AbstractEventLoop, Redis] = WeakKeyDictionary()


def get_redis_client() -> Redis:
    loop = asyncio.get_running_loop()
    try:
        return _clients[loop]
    except KeyError:
        client = Redis.from_url(settings.redis_url, decode_responses=True)
        _clients[loop] = client
        return client


async def redis_get_json(redis: Redis, key: str) -> Any | None:
    """Decoded JSON stored at `key`; None when absent or not valid JSON."""
    raw = await redis.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


async def redis_set_json(
    redis: Redis, key: str, value: Any, *, ttl_seconds: int | None = None
) -> None:
    payload = json.dumps(jsonable_encoder(value), ensure_ascii=False)
    await redis.set(key, payload, ex=ttl_seconds or None)


__all__ = ["get_redis_client", "redis_get_json", "redis_set_json"]
