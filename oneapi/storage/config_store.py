"""
Read/write access to channel configs, API tokens and pricing settings.

Every public method is a coroutine; the synchronous SQLAlchemy work runs in
a worker thread so store access never blocks the event loop. Channel rows
are additionally cached in Redis because they are read on every proxied
request and change rarely.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from oneapi.logging_config import logger
from oneapi.models import MODEL_PRICING_KEY, ApiTokenRecord, ChannelConfigRecord, SettingRecord
from oneapi.redis_client import redis_get_json, redis_set_json
from oneapi.schemas import ApiToken, ApiTokenData, Channel, ChannelConfig, ModelPricing

CHANNEL_CACHE_KEY = "oneapi:channels:all"


def _channel_from_row(key: str, value: object) -> Channel | None:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Channel %s has a malformed config document; skipping", key)
            return None
    try:
        return Channel(key=key, config=ChannelConfig.model_validate(value))
    except ValidationError as exc:
        logger.warning("Channel %s has an invalid config: %s; skipping", key, exc)
        return None


def _parse_pricing(raw: str | None) -> dict[str, ModelPricing]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Global model pricing setting is not valid JSON; ignoring")
        return {}
    if not isinstance(data, dict):
        return {}

    pricing: dict[str, ModelPricing] = {}
    for model, entry in data.items():
        try:
            pricing[model] = ModelPricing.model_validate(entry)
        except ValidationError:
            logger.warning("Ignoring invalid global pricing entry for model=%s", model)
    return pricing


class ConfigStore:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        redis: Redis | None = None,
        channel_cache_ttl: int = 0,
    ) -> None:
        self._session_factory = session_factory
        self._redis = redis
        self._channel_cache_ttl = channel_cache_ttl

    @property
    def _cache_enabled(self) -> bool:
        return self._redis is not None and self._channel_cache_ttl > 0

    # ---- tokens ----------------------------------------------------------

    def _load_token(self, key: str) -> ApiToken | None:
        with self._session_factory() as db:
            row = db.execute(
                select(ApiTokenRecord).where(ApiTokenRecord.key == key)
            ).scalars().first()
            if row is None:
                return None
            value = row.value
            if isinstance(value, str):
                value = json.loads(value)
            return ApiToken(
                key=row.key,
                data=ApiTokenData.model_validate(value or {}),
                usage=float(row.usage or 0.0),
            )

    async def get_token(self, key: str) -> ApiToken | None:
        """Fetch a token with its current usage; never cached."""
        return await asyncio.to_thread(self._load_token, key)

    def _increment_usage(self, key: str, delta: float) -> bool:
        with self._session_factory() as db:
            result = db.execute(
                update(ApiTokenRecord)
                .where(ApiTokenRecord.key == key)
                .values(usage=ApiTokenRecord.usage + delta)
            )
            db.commit()
            return bool(result.rowcount)

    async def increment_token_usage(self, key: str, delta: float) -> bool:
        """
        Atomically add `delta` to the token's usage counter.

        Returns False when the token no longer exists or the write failed.
        """
        try:
            return await asyncio.to_thread(self._increment_usage, key, delta)
        except SQLAlchemyError:
            logger.exception("Failed to increment usage for token")
            return False

    # ---- channels --------------------------------------------------------

    def _load_channels(self, keys: Sequence[str] | None) -> list[Channel]:
        stmt = select(ChannelConfigRecord).order_by(ChannelConfigRecord.key)
        if keys:
            stmt = stmt.where(ChannelConfigRecord.key.in_(list(keys)))
        with self._session_factory() as db:
            rows = db.execute(stmt).scalars().all()
            channels = [_channel_from_row(row.key, row.value) for row in rows]
        return [channel for channel in channels if channel is not None]

    async def _cached_channels(self) -> list[Channel] | None:
        assert self._redis is not None
        try:
            payload = await redis_get_json(self._redis, CHANNEL_CACHE_KEY)
        except RedisError as exc:
            logger.warning("Channel cache read failed, falling back to database: %s", exc)
            return None
        if not isinstance(payload, list):
            return None
        try:
            return [Channel.model_validate(item) for item in payload]
        except ValidationError:
            return None

    async def _store_channel_cache(self, channels: list[Channel]) -> None:
        assert self._redis is not None
        try:
            await redis_set_json(
                self._redis,
                CHANNEL_CACHE_KEY,
                [channel.model_dump(mode="json") for channel in channels],
                ttl_seconds=self._channel_cache_ttl,
            )
        except RedisError as exc:
            logger.warning("Channel cache write failed: %s", exc)

    async def get_channels(self, keys: Sequence[str] | None = None) -> list[Channel]:
        """
        Return the channels with the given keys, or every channel when `keys`
        is empty or omitted.
        """
        if not self._cache_enabled:
            return await asyncio.to_thread(self._load_channels, keys)

        channels = await self._cached_channels()
        if channels is None:
            channels = await asyncio.to_thread(self._load_channels, None)
            await self._store_channel_cache(channels)
        if keys:
            wanted = set(keys)
            channels = [channel for channel in channels if channel.key in wanted]
        return channels

    # ---- pricing ---------------------------------------------------------

    def _load_setting(self, key: str) -> str | None:
        with self._session_factory() as db:
            row = db.execute(
                select(SettingRecord).where(SettingRecord.key == key)
            ).scalars().first()
            return row.value if row is not None else None

    async def get_global_pricing(self) -> dict[str, ModelPricing]:
        raw = await asyncio.to_thread(self._load_setting, MODEL_PRICING_KEY)
        return _parse_pricing(raw)


__all__ = ["CHANNEL_CACHE_KEY", "ConfigStore"]
