"""Tests for the Redis plan cache with an in-memory client."""
from uuid import uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from lms.cache import PlanCache
from lms.config import settings


class FakeRedis:
    """Minimal async stand-in for the redis client commands the cache uses."""

    def __init__(self, fail: bool = False):
        self.store: dict[str, str] = {}
        self.fail = fail

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("connection refused")

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self._check()
        self.store[key] = value

    async def delete(self, key):
        self._check()
        return 1 if self.store.pop(key, None) is not None else 0

    async def incr(self, key):
        self._check()
        self.store[key] = str(int(self.store.get(key, 0)) + 1)
        return int(self.store[key])

    async def aclose(self):
        pass


@pytest.fixture
def enabled_cache(monkeypatch: pytest.MonkeyPatch) -> PlanCache:
    monkeypatch.setattr(settings, "cache_enabled", True)
    cache = PlanCache()
    cache._client = FakeRedis()
    return cache


@pytest.mark.asyncio
async def test_disabled_cache_never_connects() -> None:
    """With caching off every read misses and nothing connects."""
    cache = PlanCache()

    assert await cache.get_plan(uuid4()) is None
    await cache.store_plan(uuid4(), {"name": "Free"})
    await cache.invalidate()

    assert cache._client is None


@pytest.mark.asyncio
async def test_plan_round_trip_and_invalidation(enabled_cache: PlanCache) -> None:
    """A stored plan is served until the plan is written."""
    plan_id = uuid4()
    await enabled_cache.store_plan(plan_id, {"name": "Premium"})

    assert await enabled_cache.get_plan(plan_id) == {"name": "Premium"}

    await enabled_cache.invalidate(plan_id)
    assert await enabled_cache.get_plan(plan_id) is None


@pytest.mark.asyncio
async def test_any_plan_write_retires_list_pages(enabled_cache: PlanCache) -> None:
    """List pages are keyed by generation; invalidation bumps it."""
    page = {"items": [], "total": 0, "page": 1, "page_size": 100}
    await enabled_cache.store_page(1, 100, False, page)

    assert await enabled_cache.get_page(1, 100, False) == page
    assert await enabled_cache.get_page(1, 100, True) is None

    await enabled_cache.invalidate()

    assert await enabled_cache.get_page(1, 100, False) is None


@pytest.mark.asyncio
async def test_redis_outage_falls_through(enabled_cache: PlanCache) -> None:
    """Redis errors are logged and treated as misses."""
    enabled_cache._client = FakeRedis(fail=True)

    assert await enabled_cache.get_plan(uuid4()) is None
    assert await enabled_cache.get_page(1, 10, False) is None
    await enabled_cache.store_plan(uuid4(), {"name": "Basic"})
    await enabled_cache.invalidate(uuid4())
