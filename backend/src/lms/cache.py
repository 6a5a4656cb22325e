"""Redis cache for plan reads.

Plans are read on every listing page and rarely written, so single plans and
list pages are cached as JSON. List pages carry a generation number in their
key: a plan write bumps the generation instead of scanning for stale pages.

A Redis outage never fails a request; reads fall through to the database.
"""
import json
from typing import Any, Optional
from uuid import UUID

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from lms.config import settings

logger = structlog.get_logger(__name__)

KEY_PREFIX = "lms:plans"
LIST_TTL_SECONDS = 60


class PlanCache:
    """Read-through cache of serialized plans and plan list pages."""

    def __init__(self):
        self._client: Optional[redis.Redis] = None

    @property
    def enabled(self) -> bool:
        return settings.cache_enabled

    async def _connect(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                str(settings.redis_url),
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            logger.info("plan_cache_connected")
        return self._client

    @staticmethod
    def plan_key(plan_id: UUID | str) -> str:
        return f"{KEY_PREFIX}:item:{plan_id}"

    @staticmethod
    def page_key(generation: int, page: int, page_size: int, active_only: bool) -> str:
        return f"{KEY_PREFIX}:list:{generation}:{page}:{page_size}:{int(active_only)}"

    async def _generation(self, client: redis.Redis) -> int:
        value = await client.get(f"{KEY_PREFIX}:generation")
        return int(value) if value else 0

    async def get_plan(self, plan_id: UUID) -> Optional[dict[str, Any]]:
        """Cached JSON form of a plan, or None."""
        if not self.enabled:
            return None
        try:
            client = await self._connect()
            raw = await client.get(self.plan_key(plan_id))
        except RedisError as e:
            logger.warning("plan_cache_read_failed", plan_id=str(plan_id), error=str(e))
            return None

        logger.debug("plan_cache_hit" if raw else "plan_cache_miss", plan_id=str(plan_id))
        return json.loads(raw) if raw else None

    async def store_plan(self, plan_id: UUID, payload: dict[str, Any]) -> None:
        if not self.enabled:
            return
        try:
            client = await self._connect()
            await client.setex(self.plan_key(plan_id), settings.cache_ttl_seconds, json.dumps(payload))
        except RedisError as e:
            logger.warning("plan_cache_write_failed", plan_id=str(plan_id), error=str(e))

    async def get_page(self, page: int, page_size: int, active_only: bool) -> Optional[dict[str, Any]]:
        """Cached plan list page of the current generation, or None."""
        if not self.enabled:
            return None
        try:
            client = await self._connect()
            key = self.page_key(await self._generation(client), page, page_size, active_only)
            raw = await client.get(key)
        except RedisError as e:
            logger.warning("plan_cache_read_failed", page=page, error=str(e))
            return None

        logger.debug("plan_cache_hit" if raw else "plan_cache_miss", key=key)
        return json.loads(raw) if raw else None

    async def store_page(self, page: int, page_size: int, active_only: bool, payload: dict[str, Any]) -> None:
        if not self.enabled:
            return
        try:
            client = await self._connect()
            key = self.page_key(await self._generation(client), page, page_size, active_only)
            await client.setex(key, LIST_TTL_SECONDS, json.dumps(payload))
        except RedisError as e:
            logger.warning("plan_cache_write_failed", page=page, error=str(e))

    async def invalidate(self, plan_id: UUID | None = None) -> None:
        """
        Drop cached data after a plan write.

        Removes the plan's own entry when ``plan_id`` is given and always
        retires every cached list page.
        """
        if not self.enabled:
            return
        try:
            client = await self._connect()
            if plan_id is not None:
                await client.delete(self.plan_key(plan_id))
            generation = await client.incr(f"{KEY_PREFIX}:generation")
        except RedisError as e:
            logger.warning("plan_cache_invalidation_failed", plan_id=str(plan_id), error=str(e))
            return

        logger.info("plan_cache_invalidated", plan_id=str(plan_id) if plan_id else None, generation=generation)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("plan_cache_closed")


# Global cache instance
plan_cache = PlanCache()
