"""
Pytest configuration for the application
"""
import os
import time
from typing import AsyncGenerator, Dict, Optional

import httpx
import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.auth.session import XSession, encode_session
from src.cache.backends import factory as cache_factory
from src.core.config import settings
from src.db.base import Base
from src.db.models import LeaderboardEntry, LeaderboardUser  # noqa: F401
from src.db.session import get_db
from src.main import create_application
from src.services import limits as limits_service


# Set test environment and override runtime settings to avoid external deps
os.environ["ENV"] = "test"
settings.ENV = "test"
settings.cache.backend_type = "memory"
settings.USAGE_YEAR = 2025
API_PREFIX = f"{settings.API_PREFIX}/v1"


class FakeRedis:
    """Minimal async Redis stub for rate limiting and idempotency tests."""

    def __init__(self) -> None:
        self.store: Dict[str, int | str] = {}

    async def incr(self, key: str) -> int:
        current = int(self.store.get(key, 0)) + 1
        self.store[key] = current
        return current

    async def expire(self, key: str, seconds: int) -> None:
        self.store.setdefault(f"{key}:ttl", seconds)

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False) -> bool:
        if nx and key in self.store:
            return False
        self.store[key] = value
        if ex is not None:
            self.store[f"{key}:ttl"] = ex
        return True


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch) -> FakeRedis:
    """Patch the limits module to use an in-memory Redis stub."""

    fake = FakeRedis()
    monkeypatch.setattr(limits_service, "_redis_client", fake, raising=False)
    yield fake
    monkeypatch.setattr(limits_service, "_redis_client", None, raising=False)


@pytest.fixture(autouse=True)
def fresh_cache(monkeypatch):
    """Give every test an empty in-memory response cache."""

    monkeypatch.setattr(cache_factory, "_backend", None)


@pytest_asyncio.fixture
async def test_db_engine():
    """
    Create an in-memory test database engine.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    return async_sessionmaker(test_db_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a new database session for a test.
    """
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def test_app(session_factory) -> AsyncGenerator[FastAPI, None]:
    """
    Create a FastAPI test application bound to the test database.
    """
    app = create_application()

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    async with LifespanManager(app):
        yield app


@pytest_asyncio.fixture
async def client(test_app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Create an async HTTP client for testing.
    """
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as client:
        yield client


def _session_cookie(
    username: Optional[str] = "alice",
    *,
    access_token: Optional[str] = "user-token",
    refresh_token: Optional[str] = "refresh-token",
    expires_in: float = 3600,
    user_id: Optional[str] = "42",
) -> str:
    return encode_session(
        XSession(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=time.time() + expires_in,
            user_id=user_id,
            username=username,
        )
    )


def _usage_payload(total: int, *, year: int = 2025, months: Optional[Dict[str, int]] = None) -> dict:
    """An opt-in ``usage_data`` body with ``total`` tokens spread over ``months``."""

    months = months if months is not None else {"Mar": total}
    return {
        "year": year,
        "data_source": "local-files",
        "data_source_label": "Claude Code (Local Files)",
        "total_input_tokens": total // 2,
        "total_output_tokens": total - total // 2,
        "total_tokens": total,
        "total_cost": 1.5,
        "model_breakdown": [],
        "monthly_breakdown": [
            {
                "month": label,
                "input_tokens": tokens // 2,
                "output_tokens": tokens - tokens // 2,
                "total_tokens": tokens,
                "cost": 0.5,
            }
            for label, tokens in months.items()
        ],
    }


@pytest.fixture
def make_session_cookie():
    return _session_cookie


@pytest.fixture
def make_usage():
    return _usage_payload
