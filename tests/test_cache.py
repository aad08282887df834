"""Tests for the remote account cache."""

from datetime import datetime, timezone

import pytest
from prometheus_client import CollectorRegistry

from libs.account_search.cache import CachedAccountDirectory
from libs.account_search.exact_match import ExactMatchResolver
from libs.account_search.models import SearchOptions
from libs.common.metrics import SearchMetricsCollector
from tests.fakes import FakeDirectory, make_account

BOB = make_account(
    7, "bob", "example.com",
    followers_count=12,
    last_status_at=datetime(2024, 4, 30, 8, 0, tzinfo=timezone.utc),
)


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.data = {}
        self.fail = fail
        self.ttls = {}

    async def get(self, key):
        if self.fail:
            raise ConnectionError("redis down")
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        if self.fail:
            raise ConnectionError("redis down")
        self.data[key] = value
        self.ttls[key] = ttl

    async def delete(self, key):
        self.data.pop(key, None)


@pytest.mark.asyncio
async def test_miss_then_hit():
    """Test a stored remote account is served from the cache."""
    directory = FakeDirectory(remote={("bob", "example.com"): BOB})
    redis_client = FakeRedis()
    metrics = SearchMetricsCollector("test", registry=CollectorRegistry())
    cached = CachedAccountDirectory(directory, redis_client, ttl=60, metrics=metrics)

    first = await cached.find_remote("bob", "example.com")
    second = await cached.find_remote("BOB", "Example.com")

    assert first == BOB
    assert second == BOB
    assert len(directory.calls) == 1
    assert list(redis_client.ttls.values()) == [60]
    assert 'account_search_cache_hits_total{cache_type="remote_account"} 1.0' in metrics.get_metrics()


@pytest.mark.asyncio
async def test_missing_accounts_are_not_cached():
    """Test unknown accounts are not cached."""
    directory = FakeDirectory()
    redis_client = FakeRedis()
    cached = CachedAccountDirectory(directory, redis_client)

    assert await cached.find_remote("ghost", "example.com") is None
    assert redis_client.data == {}


@pytest.mark.asyncio
async def test_redis_failure_falls_back_to_directory():
    """Test Redis errors fall back to the directory."""
    directory = FakeDirectory(remote={("bob", "example.com"): BOB})
    cached = CachedAccountDirectory(directory, FakeRedis(fail=True))

    assert await cached.find_remote("bob", "example.com") == BOB


@pytest.mark.asyncio
async def test_local_lookups_pass_through():
    """Test local lookups bypass the cache."""
    alice = make_account(1, "alice")
    directory = FakeDirectory(local={"alice": alice})
    redis_client = FakeRedis()
    cached = CachedAccountDirectory(directory, redis_client)

    assert await cached.find_local("alice") == alice
    assert redis_client.data == {}


@pytest.mark.asyncio
async def test_undecodable_entry_falls_back_to_directory(normalizer):
    """Entries that no longer decode are discarded and looked up again."""
    directory = FakeDirectory(remote={("bob", "example.com"): BOB})
    redis_client = FakeRedis()
    cached = CachedAccountDirectory(directory, redis_client)
    key = cached._cache_key("bob", "example.com")
    redis_client.data[key] = '{"account": {"id": 7, "username": "bob", "avatar": "x"}}'

    resolver = ExactMatchResolver(cached)
    parsed = normalizer.normalize("bob@example.com")

    assert await resolver.resolve(parsed, SearchOptions()) == BOB
    assert len(directory.calls) == 1
    assert await cached.find_remote("bob", "example.com") == BOB
    assert len(directory.calls) == 1


@pytest.mark.asyncio
async def test_invalid_json_is_a_cache_miss():
    """Invalid JSON in the cache counts as a miss."""
    directory = FakeDirectory(remote={("bob", "example.com"): BOB})
    redis_client = FakeRedis()
    cached = CachedAccountDirectory(directory, redis_client)
    redis_client.data[cached._cache_key("bob", "example.com")] = "not json"

    assert await cached.find_remote("bob", "example.com") == BOB
