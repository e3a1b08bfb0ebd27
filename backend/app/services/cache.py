"""
Query cache backed by Redis.

Each cached query family has a CacheKey. Entries live under a per-key
generation number, so invalidating a family is a single INCR: readers move
to the new generation and old entries expire on their TTL.

If Redis is unreachable the loader is called directly and a warning is
logged.
"""

import enum
import json
import hashlib
import logging
from typing import Any, Awaitable, Callable, Dict, Optional
import redis.asyncio as redis
from fastapi import Depends
from backend.app.core.config import settings
from backend.app.core.redis_client import get_redis

logger = logging.getLogger(__name__)


class CacheKey(str, enum.Enum):
    MAINTENANCE_RECORDS = "maintenance-records"
    MAINTENANCE_KPIS = "maintenance-kpis"
    OVERDUE_MAINTENANCE = "overdue-maintenance"
    UPCOMING_MAINTENANCE = "upcoming-maintenance"
    SPILL_KIT_TEMPLATES = "spill-kit-templates"
    SPILL_KITS_STATUS = "spill-kits-status"
    INCIDENTS = "spill-incidents"


# Invalidated after any maintenance record create, update, status change or delete
MAINTENANCE_MUTATION_KEYS = (
    CacheKey.MAINTENANCE_RECORDS,
    CacheKey.MAINTENANCE_KPIS,
    CacheKey.OVERDUE_MAINTENANCE,
    CacheKey.UPCOMING_MAINTENANCE,
)

NAMESPACE = "qc"


class QueryCache:

    def __init__(self, client, ttl_seconds: Optional[int] = None):
        self.client = client
        self.ttl_seconds = ttl_seconds or settings.cache_ttl_seconds

    @staticmethod
    def _generation_key(key: CacheKey) -> str:
        return f"{NAMESPACE}:gen:{key.value}"

    @staticmethod
    def _params_digest(params: Optional[Dict[str, Any]]) -> str:
        raw = json.dumps(params or {}, sort_keys=True, default=str)
        return hashlib.sha1(raw.encode()).hexdigest()[:16]

    async def generation(self, key: CacheKey) -> int:
        value = await self.client.get(self._generation_key(key))
        return int(value) if value else 0

    async def get_or_load(
        self,
        key: CacheKey,
        params: Optional[Dict[str, Any]],
        loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return the cached value for (key, params) or compute and store it.

        Args:
            key: Query family
            params: Filter values that distinguish entries within the family
            loader: Coroutine factory producing a JSON-serializable value
        """
        try:
            gen = await self.generation(key)
            entry_key = f"{NAMESPACE}:{key.value}:{gen}:{self._params_digest(params)}"
            cached = await self.client.get(entry_key)
        except redis.RedisError as exc:
            logger.warning("Query cache unavailable for %s: %s", key.value, exc)
            return await loader()

        if cached is not None:
            return json.loads(cached)

        value = await loader()
        try:
            await self.client.set(entry_key, json.dumps(value, default=str), ex=self.ttl_seconds)
        except redis.RedisError as exc:
            logger.warning("Failed to store %s in query cache: %s", key.value, exc)
        return value

    async def invalidate(self, *keys: CacheKey) -> None:
        for key in keys:
            try:
                await self.client.incr(self._generation_key(key))
            except redis.RedisError as exc:
                # Entries still expire on their TTL
                logger.error("Failed to invalidate %s: %s", key.value, exc)


async def get_query_cache(client=Depends(get_redis)) -> QueryCache:
    """FastAPI dependency wrapping the shared Redis client."""
    return QueryCache(client)


async def invalidate_maintenance(cache: QueryCache) -> None:
    await cache.invalidate(*MAINTENANCE_MUTATION_KEYS)
