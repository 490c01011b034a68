import pytest

from src.core.config import settings


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get(f"{settings.API_PREFIX}/v1/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
