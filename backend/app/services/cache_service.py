"""
Redis caching service for venue summaries.

CACHING STRATEGY
================

What we cache:
  - Venue summaries including the rating aggregate (JSON-serialized)
  - Cache key pattern: "venues:summary:{venue_id}:v{generation}"

Why:
  - Venue pages are read far more often than ratings change
  - The aggregate only changes when a rating is added, edited or deleted

Invalidation strategy:
  - Keys carry a per-venue generation ("venues:summary:{venue_id}:v{gen}")
  - After every successful aggregate recomputation the generation is bumped,
    so a reader that loaded the venue before the recompute committed writes
    into a retired key nobody reads again
  - TTL-based expiry as safety net (5 minutes)

What we never cache:
  - Booking availability. The conflict check must always read the database;
    a stale answer there would double-book a court.

Redis is advisory only: every helper fails open (logs and carries on) so a
Redis outage degrades to direct database reads.
"""

import json
from typing import Optional

import redis.asyncio as redis
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            # Test connection
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_generation_key(venue_id: int) -> str:
    return f"venues:summary:{venue_id}:gen"


def _make_venue_key(venue_id: int, generation: int) -> str:
    return f"venues:summary:{venue_id}:v{generation}"


async def get_venue_generation(venue_id: int) -> int:
    """
    Current cache generation of a venue summary.
    Readers take it before loading the venue from the database and write
    back under it, so a slow reader can only fill a generation that an
    invalidation has already retired.
    """
    client = await get_redis()
    if not client:
        return 0

    try:
        value = await client.get(_make_generation_key(venue_id))
    except Exception as e:
        logger.error("cache_generation_error", venue_id=venue_id, error=str(e))
        return 0
    return int(value) if value else 0


async def get_cached_venue(venue_id: int, generation: int) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_venue_key(venue_id, generation)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=bool(data))
        if data:
            return json.loads(data)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_venue(venue_id: int, generation: int, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_venue_key(venue_id, generation)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_venue_cache(venue_id: int) -> None:
    """Retire the current generation; older keys expire on their TTL."""
    client = await get_redis()
    if not client:
        return

    try:
        generation = await client.incr(_make_generation_key(venue_id))
        await client.delete(_make_venue_key(venue_id, generation - 1))
        logger.debug("cache_invalidated", venue_id=venue_id, generation=generation)
    except Exception as e:
        logger.error("cache_invalidation_error", venue_id=venue_id, error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
