"""Rate limiting and idempotency helpers."""
from __future__ import annotations

import time
from typing import Optional

import redis.asyncio as redis
from fastapi import HTTPException, Request, status

from src.core.config import settings

_redis_client: redis.Redis | None = None


async def _get_client() -> redis.Redis:
    """Return a cached Redis client instance."""

    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            str(settings.REDIS_URI), decode_responses=True
        )
    return _redis_client


def client_key(request: Request, username: Optional[str] = None) -> str:
    """Identify the caller: the connected X handle, else the client address."""

    if username:
        return f"x:{username.lower()}"
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


async def check_rate_limit(key: str, scope: str = "api") -> None:
    """Enforce a simple fixed-window rate limit per caller."""

    client = await _get_client()
    minute_window = int(time.time() // 60)
    redis_key = f"rl:{scope}:{key}:{minute_window}"
    current = await client.incr(redis_key)
    if current == 1:
        await client.expire(redis_key, 60)
    if current > settings.RATE_LIMIT_RPM:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
        )


async def ensure_idempotent(key: str, idempotency_key: Optional[str]) -> None:
    """Reject duplicate POST requests sharing the same idempotency key."""

    if not idempotency_key:
        return
    client = await _get_client()
    redis_key = f"idemp:{key}:{idempotency_key}"
    was_set = await client.set(
        redis_key, "1", ex=settings.limits.idempotency_ttl_seconds, nx=True
    )
    if not was_set:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Duplicate request (idempotency)",
        )
