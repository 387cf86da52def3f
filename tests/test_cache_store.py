"""
Unit tests of the Redis result cache client, with a mocked Redis connection
"""
from unittest.mock import AsyncMock, MagicMock, patch
import pytest

from fkgq.services.util.cache_store import RedisCacheStore, redis_store_configured


@pytest.fixture
def redis_client(monkeypatch):
    monkeypatch.setattr(RedisCacheStore, "instance", None)
    client = MagicMock()
    client.get = AsyncMock(return_value='[{"predicate": "biolink:treats"}]')
    client.set = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    with patch("fkgq.services.util.cache_store.aioredis.Redis", return_value=client) as redis_class:
        yield redis_class, client


def test_singleton_connection(redis_client):
    redis_class, client = redis_client
    first = RedisCacheStore(host="localhost", port=6380, password="secret")
    second = RedisCacheStore(host="elsewhere", port=1234)
    redis_class.assert_called_once_with(
        host="localhost",
        port=6380,
        password="secret",
        decode_responses=True
    )
    assert first.instance is second.instance
    assert second.client is client


def test_connection_from_config(monkeypatch, redis_client):
    redis_class, _ = redis_client
    monkeypatch.setenv("REDIS_HOST", "redis.example.org")
    monkeypatch.setenv("REDIS_PORT", "6390")
    monkeypatch.delenv("REDIS_PASSWORD", raising=False)
    assert redis_store_configured()
    RedisCacheStore()
    redis_class.assert_called_once_with(
        host="redis.example.org",
        port=6390,
        password=None,
        decode_responses=True
    )


def test_store_not_configured(monkeypatch):
    monkeypatch.delenv("REDIS_HOST", raising=False)
    monkeypatch.setenv("REDIS_PORT", "6379")
    assert not redis_store_configured()


@pytest.mark.asyncio
async def test_get_and_set_with_ttl(redis_client):
    _, client = redis_client
    store = RedisCacheStore(host="localhost", port=6379)

    value = await store.get("edge-hash")
    client.get.assert_awaited_once_with("edge-hash")
    # decoded responses are JSON text, as written by the cache handler
    assert value == '[{"predicate": "biolink:treats"}]'

    await store.set("edge-hash", "[]", 30)
    client.set.assert_awaited_once_with("edge-hash", "[]", ex=30)


@pytest.mark.asyncio
async def test_get_missing_key(redis_client):
    _, client = redis_client
    client.get.return_value = None
    store = RedisCacheStore(host="localhost", port=6379)
    assert await store.get("unknown-hash") is None


@pytest.mark.asyncio
async def test_close(redis_client):
    _, client = redis_client
    store = RedisCacheStore(host="localhost", port=6379)
    await store.close()
    client.aclose.assert_awaited_once()
