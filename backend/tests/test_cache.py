"""
Tests for the venue summary cache: generation-based invalidation.
"""

import pytest
import pytest_asyncio
from httpx import AsyncClient

from app.services import cache_service
from tests.conftest import auth_headers_for


class InMemoryRedis:
    """Just enough of the redis.asyncio client for the venue summary cache."""

    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value

    async def delete(self, key):
        self.store.pop(key, None)

    async def incr(self, key):
        self.store[key] = str(int(self.store.get(key, 0)) + 1)
        return int(self.store[key])


@pytest_asyncio.fixture
async def redis_store(monkeypatch) -> InMemoryRedis:
    store = InMemoryRedis()

    async def get_redis():
        return store

    monkeypatch.setattr(cache_service, "get_redis", get_redis)
    return store


@pytest.mark.asyncio
async def test_summary_served_from_cache(client: AsyncClient, redis_store, test_venue):
    venue_id = test_venue.id
    first = await client.get(f"/api/v1/venues/{venue_id}")
    assert first.json()["cached"] is False

    second = await client.get(f"/api/v1/venues/{venue_id}")
    assert second.json()["cached"] is True
    assert second.json()["total_ratings"] == 0


@pytest.mark.asyncio
async def test_rating_change_invalidates_summary(client: AsyncClient, redis_store, player, test_venue, make_booking):
    venue_id = test_venue.id
    await make_booking(player, days=-1)
    await client.get(f"/api/v1/venues/{venue_id}")

    response = await client.post(
        "/api/v1/ratings/", json={"venue_id": venue_id, "score": 4}, headers=auth_headers_for(player)
    )
    assert response.status_code == 201

    summary = (await client.get(f"/api/v1/venues/{venue_id}")).json()
    assert summary["cached"] is False
    assert (summary["average_rating"], summary["total_ratings"]) == (4.0, 1)


@pytest.mark.asyncio
async def test_slow_reader_cannot_refill_after_invalidation(redis_store):
    """
    A reader that took the generation (and loaded the venue) before a
    recompute committed writes its old summary after the invalidation.
    The next reader must not see it.
    """
    venue_id = 7
    generation = await cache_service.get_venue_generation(venue_id)

    await cache_service.invalidate_venue_cache(venue_id)
    await cache_service.set_cached_venue(venue_id, generation, {"id": venue_id, "total_ratings": 0})

    current = await cache_service.get_venue_generation(venue_id)
    assert current == generation + 1
    assert await cache_service.get_cached_venue(venue_id, current) is None


@pytest.mark.asyncio
async def test_cache_disabled_fails_open():
    """With Redis disabled every helper is a no-op."""
    assert await cache_service.get_venue_generation(1) == 0
    assert await cache_service.get_cached_venue(1, 0) is None
    await cache_service.set_cached_venue(1, 0, {"id": 1})
    await cache_service.invalidate_venue_cache(1)
