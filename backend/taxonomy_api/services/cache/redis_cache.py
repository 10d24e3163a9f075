"""Redis cache backend using redis-py's asyncio client."""

from __future__ import annotations

import json
import logging
from typing import Any

from redis.asyncio import Redis

from taxonomy_api.services.cache.base import BaseCache

logger = logging.getLogger(__name__)

# Keys touched by clear(); other applications may share the database
KEY_PREFIX = "taxonomy:"


class RedisCache(BaseCache):
    """Values are stored as JSON strings with SET EX / pipelined writes."""

    def __init__(self, url: str = "redis://localhost:6379/0", client: Redis | None = None):
        self.url = url
        self._client = client

    def _get_client(self) -> Redis:
        if self._client is None:
            self._client = Redis.from_url(self.url, decode_responses=True)
            logger.info("Redis cache client created for %s", self.url)
        return self._client

    async def get(self, key: str) -> Any | None:
        raw = await self._get_client().get(key)
        return json.loads(raw) if raw is not None else None

    async def set_with_ttl(self, key: str, value: Any, ttl_seconds: int) -> None:
        await self._get_client().set(key, json.dumps(value), ex=ttl_seconds)

    async def mget(self, keys: list[str]) -> list[Any | None]:
        if not keys:
            return []
        raws = await self._get_client().mget(keys)
        return [json.loads(r) if r is not None else None for r in raws]

    async def set_many_with_ttl(self, items: dict[str, Any], ttl_seconds: int) -> None:
        if not items:
            return
        async with self._get_client().pipeline(transaction=False) as pipe:
            for key, value in items.items():
                pipe.set(key, json.dumps(value), ex=ttl_seconds)
            await pipe.execute()

    async def delete_many(self, keys: list[str]) -> int:
        if not keys:
            return 0
        return await self._get_client().delete(*keys)

    async def clear(self) -> None:
        client = self._get_client()
        batch: list[str] = []
        async for key in client.scan_iter(match=f"{KEY_PREFIX}*", count=1000):
            batch.append(key)
            if len(batch) >= 1000:
                await client.delete(*batch)
                batch = []
        if batch:
            await client.delete(*batch)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
