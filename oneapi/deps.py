import httpx
from fastapi import Depends
from redis.asyncio import Redis

from .db import SessionLocal
from .http_client import get_shared_http_client
from .redis_client import get_redis_client
from .settings import settings
from .storage import ConfigStore


async def get_redis() -> Redis:
    """
    FastAPI dependency that provides the shared Redis client.

    Tests override this with an in-memory fake.
    """
    return get_redis_client()


async def get_http_client() -> httpx.AsyncClient:
    """
    Provide the shared httpx client for upstream calls.

    Tests override this with a client backed by httpx.MockTransport.
    """
    return get_shared_http_client()


async def get_config_store(redis: Redis = Depends(get_redis)) -> ConfigStore:
    return ConfigStore(
        SessionLocal,
        redis=redis,
        channel_cache_ttl=settings.channel_cache_ttl,
    )


__all__ = ["get_config_store", "get_http_client", "get_redis"]
