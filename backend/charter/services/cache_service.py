"""
Redis caching service for customer listings.

CACHING STRATEGY
================

What we cache:
  - A customer's listing responses (inquiries, quotes, bookings), JSON-serialized
  - Cache key pattern: "charter:{customer_id}:{kind}:page=1&page_size=10&..."

Why per customer:
  - Every listing is scoped to its owner, so one customer's keys can be
    dropped without touching anyone else's.

Invalidation strategy:
  - After any lifecycle write that touches a customer's records (new
    inquiry, new quote on their inquiry, acceptance, payment confirmation)
    every key under "charter:{customer_id}:" is deleted with SCAN.
  - TTL (REDIS_CACHE_TTL) is the safety net for anything missed.

What we never cache:
  - Single-record reads and anything used to decide a transition. The
    lifecycle services always read the database.

Every function fails open: with Redis disabled or down, callers just miss.
"""

import json
from typing import Optional

from redis.exceptions import RedisError

from charter.core.config import get_settings
from charter.core.logging import get_logger
from charter.core.metrics import record_cache_operation
from charter.infrastructure.redis_client import get_redis

logger = get_logger(__name__)

KEY_PREFIX = "charter"


def listing_key(customer_id: str, kind: str, params: dict) -> str:
    query = "&".join(f"{name}={params[name]}" for name in sorted(params))
    return f"{KEY_PREFIX}:{customer_id}:{kind}:{query}"


async def get_cached_listing(customer_id: str, kind: str, params: dict) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = listing_key(customer_id, kind, params)
    try:
        data = await client.get(key)
    except RedisError as e:
        record_cache_operation("get", "error")
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    if data:
        record_cache_operation("get", "hit")
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    record_cache_operation("get", "miss")
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_listing(customer_id: str, kind: str, params: dict, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    ttl = get_settings().REDIS_CACHE_TTL
    key = listing_key(customer_id, kind, params)
    try:
        await client.setex(key, ttl, json.dumps(data, default=str))
    except RedisError as e:
        record_cache_operation("set", "error")
        logger.error("cache_set_error", key=key, error=str(e))
        return
    record_cache_operation("set", "ok")
    logger.debug("cache_set", key=key, ttl=ttl)


async def invalidate_customer_cache(customer_id: str) -> int:
    """Drop every cached listing of one customer. Returns the number of keys deleted."""
    client = await get_redis()
    if not client:
        return 0

    deleted = 0
    try:
        async for key in client.scan_iter(match=f"{KEY_PREFIX}:{customer_id}:*", count=100):
            await client.delete(key)
            deleted += 1
    except RedisError as e:
        record_cache_operation("invalidate", "error")
        logger.error("cache_invalidation_error", customer_id=customer_id, error=str(e))
        return deleted
    record_cache_operation("invalidate", "ok")
    logger.info("cache_invalidated", customer_id=customer_id, keys_deleted=deleted)
    return deleted


async def get_cache_stats() -> dict:
    """Redis cache statistics for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
