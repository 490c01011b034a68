"""
Caching decorators for service-level results
"""
import functools
import hashlib
import inspect
import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from src.cache.backends.base import CacheBackend
from src.cache.backends.factory import get_cache_backend
from src.core.config import settings


logger = logging.getLogger(__name__)


def _get_cache_key(prefix: str, func_name: str, args_dict: Dict[str, Any]) -> str:
    """
    Build ``prefix:func:hash`` from the call arguments
    """
    args_str = json.dumps(args_dict, sort_keys=True, default=str)
    args_hash = hashlib.md5(args_str.encode()).hexdigest()
    return f"{prefix}:{func_name}:{args_hash}"


def cached(
    ttl: Optional[int] = None,
    key_prefix: str = "cache",
    exclude_keys: Tuple[str, ...] = ("self", "cls", "db", "cache"),
) -> Callable:
    """
    Cache the JSON-encoded return value of an async function

    Args:
        ttl: Time to live in seconds. Defaults to settings.CACHE_TTL_SECONDS.
        key_prefix: Namespace for the cache key; invalidate with ``"<prefix>:*"``
        exclude_keys: Parameter names left out of the key

    A cache hit returns the decoded JSON (plain dicts/lists), so callers must
    accept either shape.
    """
    def decorator(func):
        sig = inspect.signature(func)
        func_name = func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            cache_backend = kwargs.pop("cache", None) or get_cache_backend()

            bound_args = sig.bind(*args, **kwargs)
            bound_args.apply_defaults()
            arg_dict = {
                k: v
                for k, v in bound_args.arguments.items()
                if k not in exclude_keys and not isinstance(v, (CacheBackend, AsyncSession))
            }
            cache_key = _get_cache_key(key_prefix, func_name, arg_dict)

            cached_value = None
            try:
                cached_value = await cache_backend.get(cache_key)
            except Exception as cache_exc:
                logger.error("Cache error during get: %s", cache_exc)

            if cached_value is not None:
                logger.debug("Cache hit for key: %s", cache_key)
                return json.loads(cached_value)

            logger.debug("Cache miss for key: %s", cache_key)
            result = await func(*args, **kwargs)

            actual_ttl = ttl if ttl is not None else settings.CACHE_TTL_SECONDS
            try:
                serialized = json.dumps(jsonable_encoder(result))
                await cache_backend.set(cache_key, serialized, ex=actual_ttl)
            except Exception as cache_exc:
                logger.error("Cache error during set: %s", cache_exc)

            return result

        return wrapper
    return decorator


def invalidate_cache(key_pattern: str) -> Callable:
    """
    Delete keys matching ``key_pattern`` after the wrapped call succeeds

    Args:
        key_pattern: Glob-style pattern, e.g. "leaderboard:*"
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            result = await func(*args, **kwargs)

            cache_backend = get_cache_backend()
            try:
                cursor = "0"
                deleted_count = 0
                while True:
                    cursor, keys = await cache_backend.scan(
                        cursor=cursor, match=key_pattern, count=100
                    )
                    if keys:
                        deleted_count += await cache_backend.delete(*keys)
                    if cursor == "0":
                        break
                logger.info("Invalidated %d cache keys matching '%s'", deleted_count, key_pattern)
            except Exception as exc:
                logger.error("Cache invalidation error: %s", exc)

            return result

        return wrapper
    return decorator
