"""
Order cache on top of a key/value store with expiry.

The cache is advisory: every helper here logs and swallows backend failures,
and a value that no longer decodes into an Order counts as a miss.
"""

from __future__ import annotations

import logging
from typing import Protocol

import redis.asyncio as aioredis
from pydantic import ValidationError as PydanticValidationError

from common.models import Order

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600


class Cache(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...


class RedisCache:
    """Cache backed by Redis (SET key value EX ttl)."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisCache:
        return cls(aioredis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.set(key, value, ex=ttl_seconds)

    async def close(self) -> None:
        await self._client.aclose()


def order_cache_key(order_id: str) -> str:
    """
    >>> order_cache_key("01J0ABC")
    'order:01J0ABC'
    """
    return f"order:{order_id}"


async def cache_order(cache: Cache, order: Order, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> bool:
    """Write the order snapshot. Returns False (and logs) on any backend failure."""
    try:
        await cache.set(order_cache_key(order.order_id), order.model_dump_json(), ttl_seconds)
        return True
    except Exception as e:
        logger.error("Failed to cache order %s: %s", order.order_id, e)
        return False


async def read_cached_order(cache: Cache, order_id: str) -> Order | None:
    """Return the cached order, or None on miss, backend error or undecodable value."""
    try:
        raw = await cache.get(order_cache_key(order_id))
    except Exception as e:
        logger.error("Cache read failed for order %s: %s", order_id, e)
        return None
    if raw is None:
        return None
    try:
        return Order.model_validate_json(raw)
    except PydanticValidationError as e:
        logger.warning("Discarding undecodable cache entry for order %s: %s", order_id, e)
        return None
