"""Process-wide cache backend selection."""
from __future__ import annotations

import logging
from typing import Optional

from src.cache.backends.base import CacheBackend
from src.cache.backends.memory import MemoryCacheBackend
from src.core.config import settings


logger = logging.getLogger(__name__)

_backend: Optional[CacheBackend] = None


def get_cache_backend() -> CacheBackend:
    global _backend
    if _backend is None:
        if settings.cache.backend_type == "redis":
            from src.cache.backends.redis import RedisCacheBackend

            _backend = RedisCacheBackend(settings.REDIS_URI)
        else:
            _backend = MemoryCacheBackend()
        logger.info("Using %s cache backend", settings.cache.backend_type)
    return _backend


async def close_cache_backend() -> None:
    global _backend
    if _backend is not None:
        await _backend.close()
        _backend = None
