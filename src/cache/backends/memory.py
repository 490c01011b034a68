"""In-process cache backend for development and tests."""
from __future__ import annotations

import fnmatch
import time
from typing import Dict, List, Optional, Tuple

from src.cache.backends.base import CacheBackend


class MemoryCacheBackend(CacheBackend):
    def __init__(self) -> None:
        self._store: Dict[str, Tuple[str, Optional[float]]] = {}

    def _alive(self, key: str) -> bool:
        item = self._store.get(key)
        if item is None:
            return False
        _, expires_at = item
        if expires_at is not None and expires_at <= time.monotonic():
            self._store.pop(key, None)
            return False
        return True

    async def get(self, key: str) -> Optional[str]:
        if not self._alive(key):
            return None
        return self._store[key][0]

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        expires_at = time.monotonic() + ex if ex else None
        self._store[key] = (value, expires_at)

    async def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self._store.pop(key, None) is not None)

    async def scan(
        self, cursor: str = "0", match: Optional[str] = None, count: int = 100
    ) -> Tuple[str, List[str]]:
        keys = [
            key
            for key in list(self._store)
            if self._alive(key) and (match is None or fnmatch.fnmatchcase(key, match))
        ]
        return "0", keys

    def clear(self) -> None:
        self._store.clear()
