from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from oneapi.deps import get_config_store, get_http_client
from oneapi.models import MODEL_PRICING_KEY, ApiTokenRecord, Base, ChannelConfigRecord, SettingRecord
from oneapi.storage import ConfigStore

DEFAULT_TOKEN = "sk-gateway-test-token"


class InMemoryRedis:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self.set_calls = 0

    async def get(self, key: str):
        return self._data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None):
        self.set_calls += 1
        self._data[key] = value

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed


def create_inmemory_store(
    *, redis: Any = None, channel_cache_ttl: int = 0
) -> tuple[ConfigStore, sessionmaker[Session]]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        future=True,
        expire_on_commit=False,
    )
    store = ConfigStore(SessionLocal, redis=redis, channel_cache_ttl=channel_cache_ttl)
    return store, SessionLocal


def install_inmemory_db(
    app, *, redis: Any = None, channel_cache_ttl: int = 0
) -> tuple[ConfigStore, sessionmaker[Session]]:
    """
    Attach an in-memory SQLite config store to the FastAPI app.
    """
    store, SessionLocal = create_inmemory_store(redis=redis, channel_cache_ttl=channel_cache_ttl)

    async def override_get_config_store() -> ConfigStore:
        return store

    app.dependency_overrides[get_config_store] = override_get_config_store
    return store, SessionLocal


def seed_channel(
    session_factory: sessionmaker[Session],
    key: str,
    *,
    type: str | None = "openai",
    endpoint: str = "https://upstream.test",
    api_key: str = "sk-upstream",
    deployment_mapper: dict[str, str] | None = None,
    api_version: str | None = None,
    model_pricing: dict[str, dict[str, float]] | None = None,
) -> None:
    value: dict[str, Any] = {
        "name": key,
        "endpoint": endpoint,
        "api_key": api_key,
        "deployment_mapper": deployment_mapper or {},
    }
    if type is not None:
        value["type"] = type
    if api_version is not None:
        value["api_version"] = api_version
    if model_pricing is not None:
        value["model_pricing"] = model_pricing
    with session_factory() as session:
        session.add(ChannelConfigRecord(key=key, value=value))
        session.commit()


def seed_token(
    session_factory: sessionmaker[Session],
    key: str = DEFAULT_TOKEN,
    *,
    name: str = "test token",
    channel_keys: list[str] | None = None,
    total_quota: float = 1_000_000.0,
    usage: float = 0.0,
) -> None:
    with session_factory() as session:
        session.add(
            ApiTokenRecord(
                key=key,
                value={
                    "name": name,
                    "channel_keys": channel_keys or [],
                    "total_quota": total_quota,
                },
                usage=usage,
            )
        )
        session.commit()


def seed_global_pricing(
    session_factory: sessionmaker[Session], pricing: dict[str, dict[str, float]]
) -> None:
    with session_factory() as session:
        session.add(SettingRecord(key=MODEL_PRICING_KEY, value=json.dumps(pricing)))
        session.commit()


def get_token_usage(session_factory: sessionmaker[Session], key: str = DEFAULT_TOKEN) -> float:
    with session_factory() as session:
        row = session.execute(
            select(ApiTokenRecord).where(ApiTokenRecord.key == key)
        ).scalars().one()
        return row.usage


def auth_headers(token: str = DEFAULT_TOKEN) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def sse_body(*events: dict[str, Any], done: bool = True) -> bytes:
    body = "".join(f"data: {json.dumps(event)}\n\n" for event in events)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode()


class UpstreamSpy:
    """
    httpx.MockTransport handler that records every outbound request.
    """

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response] | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self._handler = handler or (lambda request: httpx.Response(200, json={}))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def last_json(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def install_upstream(app, handler: Callable[[httpx.Request], httpx.Response] | None = None) -> UpstreamSpy:
    spy = UpstreamSpy(handler)
    client = spy.client()

    async def override_get_http_client() -> httpx.AsyncClient:
        return client

    app.dependency_overrides[get_http_client] = override_get_http_client
    return spy
