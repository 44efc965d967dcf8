from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from app.core.config import settings
from app.db.redis import redis_client

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheService:
    """Read-through JSON cache over Redis with tag-based invalidation.

    Every cached key is recorded in one Redis set per tag; invalidating a
    tag deletes its member keys and then the set itself. Redis failures are
    logged and treated as cache misses so callers always get a value.
    """

    def __init__(self, client: Any, prefix: str, default_ttl: int) -> None:
        self.client = client
        self.prefix = prefix
        self.default_ttl = default_ttl

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def _tag_key(self, tag: str) -> str:
        return f"{self.prefix}:tag:{tag}"

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self.client.get(self._key(key))
        except Exception:
            logger.warning("Cache read failed", extra={"context": {"key": key}}, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Dropping undecodable cache entry", extra={"context": {"key": key}})
            return None

    async def set(self, key: str, value: Any, *, ttl: int | None = None, tags: list[str] | None = None) -> None:
        full_key = self._key(key)
        expire = int(ttl or self.default_ttl)
        try:
            await self.client.set(full_key, json.dumps(value, default=str), ex=expire)
            for tag in tags or []:
                tag_key = self._tag_key(tag)
                await self.client.sadd(tag_key, full_key)
                await self.client.expire(tag_key, expire)
        except Exception:
            logger.warning("Cache write failed", extra={"context": {"key": key}}, exc_info=True)

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(self._key(key))
        except Exception:
            logger.warning("Cache delete failed", extra={"context": {"key": key}}, exc_info=True)

    async def get_or_set(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]],
        *,
        tags: list[str] | None = None,
        ttl: int | None = None,
    ) -> T:
        cached = await self.get(key)
        if cached is not None:
            return cached
        value = await fn()
        if value is not None:
            await self.set(key, value, ttl=ttl, tags=tags)
        return value

    async def get_or_set_user(self, field: str, value: Any, fn: Callable[[], Awaitable[T]]) -> T:
        return await self.get_or_set(
            f"user:{field}:{value}",
            fn,
            tags=["user", f"user:{value}"],
        )

    async def invalidate_by_tags(self, *tags: str) -> int:
        removed = 0
        for tag in tags:
            tag_key = self._tag_key(tag)
            try:
                members = await self.client.smembers(tag_key)
                if members:
                    removed += int(await self.client.delete(*members) or 0)
                await self.client.delete(tag_key)
            except Exception:
                logger.warning("Cache invalidation failed", extra={"context": {"tag": tag}}, exc_info=True)
        return removed


cache = CacheService(redis_client, settings.cache_prefix, settings.cache_default_ttl_seconds)
