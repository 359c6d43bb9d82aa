import pytest

from oneapi.models import ChannelConfigRecord
from oneapi.schemas import ModelPricing
from tests.utils import InMemoryRedis, create_inmemory_store, seed_channel, seed_global_pricing, seed_token


@pytest.mark.asyncio
async def test_get_token_returns_data_and_usage() -> None:
    store, SessionLocal = create_inmemory_store()
    seed_token(SessionLocal, "sk-a", name="alice", channel_keys=["c1"], total_quota=100.0, usage=40.0)

    token = await store.get_token("sk-a")

    assert token is not None
    assert token.data.name == "alice"
    assert token.data.channel_keys == ["c1"]
    assert token.usage == 40.0
    assert not token.quota_exhausted
    assert await store.get_token("sk-unknown") is None


@pytest.mark.asyncio
async def test_quota_exhausted_at_exact_limit() -> None:
    store, SessionLocal = create_inmemory_store()
    seed_token(SessionLocal, "sk-a", total_quota=100.0, usage=100.0)

    token = await store.get_token("sk-a")

    assert token.quota_exhausted


@pytest.mark.asyncio
async def test_get_channels_all_or_by_key() -> None:
    store, SessionLocal = create_inmemory_store()
    seed_channel(SessionLocal, "b", deployment_mapper={"gpt-4o": "b-4o"})
    seed_channel(SessionLocal, "a", type="claude", deployment_mapper={"claude-*": "claude"})

    assert [c.key for c in await store.get_channels()] == ["a", "b"]
    assert [c.key for c in await store.get_channels(["b", "missing"])] == ["b"]

    channel = (await store.get_channels(["a"]))[0]
    assert channel.config.type == "claude"
    assert channel.config.deployment_mapper == {"claude-*": "claude"}


@pytest.mark.asyncio
async def test_invalid_channel_rows_are_skipped() -> None:
    store, SessionLocal = create_inmemory_store()
    seed_channel(SessionLocal, "good")
    with SessionLocal() as session:
        session.add(ChannelConfigRecord(key="broken", value={"deployment_mapper": "not-a-dict"}))
        session.commit()

    assert [c.key for c in await store.get_channels()] == ["good"]


@pytest.mark.asyncio
async def test_malformed_channel_pricing_entries_are_dropped() -> None:
    store, SessionLocal = create_inmemory_store()
    seed_channel(
        SessionLocal,
        "c1",
        model_pricing={"gpt-4o": {"input": 1}, "gpt-4o-mini": {"input": 1, "output": 2}},
    )

    channels = await store.get_channels()

    assert [c.key for c in channels] == ["c1"]
    assert channels[0].config.model_pricing == {"gpt-4o-mini": ModelPricing(input=1, output=2)}


@pytest.mark.asyncio
async def test_channels_are_served_from_redis_cache() -> None:
    redis = InMemoryRedis()
    store, SessionLocal = create_inmemory_store(redis=redis, channel_cache_ttl=30)
    seed_channel(SessionLocal, "a")

    assert [c.key for c in await store.get_channels()] == ["a"]
    seed_channel(SessionLocal, "b")

    # Still the cached snapshot, filtered by key in memory.
    assert [c.key for c in await store.get_channels()] == ["a"]
    assert [c.key for c in await store.get_channels(["a", "b"])] == ["a"]
    assert redis.set_calls == 1


@pytest.mark.asyncio
async def test_channel_cache_disabled_without_ttl() -> None:
    redis = InMemoryRedis()
    store, SessionLocal = create_inmemory_store(redis=redis, channel_cache_ttl=0)
    seed_channel(SessionLocal, "a")
    await store.get_channels()
    seed_channel(SessionLocal, "b")

    assert [c.key for c in await store.get_channels()] == ["a", "b"]
    assert redis.set_calls == 0


@pytest.mark.asyncio
async def test_global_pricing_parsing() -> None:
    store, SessionLocal = create_inmemory_store()
    assert await store.get_global_pricing() == {}

    seed_global_pricing(
        SessionLocal,
        {"gpt-4o": {"input": 1, "output": 2, "cache": 0.5}, "broken": {"input": "x"}},
    )

    assert await store.get_global_pricing() == {
        "gpt-4o": ModelPricing(input=1, output=2, cache=0.5)
    }
