"""Redis cache backend."""
from __future__ import annotations

from typing import List, Optional, Tuple

import redis.asyncio as redis

from src.cache.backends.base import CacheBackend


class RedisCacheBackend(CacheBackend):
    def __init__(self, url: str) -> None:
        self._client = redis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        await self._client.set(key, value, ex=ex)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._client.delete(*keys))

    async def scan(
        self, cursor: str = "0", match: Optional[str] = None, count: int = 100
    ) -> Tuple[str, List[str]]:
        next_cursor, keys = await self._client.scan(cursor=int(cursor), match=match, count=count)
        return str(next_cursor), list(keys)

    async def close(self) -> None:
        await self._client.aclose()
