"""Cache backend interface."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple


class CacheBackend(ABC):
    """Minimal async key/value interface used by the cache decorators."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        ...

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        ...

    @abstractmethod
    async def scan(
        self, cursor: str = "0", match: Optional[str] = None, count: int = 100
    ) -> Tuple[str, List[str]]:
        """Return ``(next_cursor, keys)``; a ``"0"`` cursor means the scan is complete."""

    async def close(self) -> None:
        return None
