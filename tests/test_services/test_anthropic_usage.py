from decimal import Decimal

import httpx
import pytest

from src.core.exceptions import (
    NoUsageData,
    UpstreamAuthError,
    UpstreamError,
    UpstreamForbiddenError,
    ValidationFailed,
)
from src.services.anthropic_usage import (
    USAGE_PATH,
    AnthropicUsageClient,
    fetch_admin_usage,
    validate_admin_key,
)

ADMIN_KEY = "sk-ant-admin-test"


def _row(date, model="claude-3-opus-20240229", input_tokens=1000, output_tokens=500, **extra):
    return {
        "date": date,
        "model": model,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        **extra,
    }


def _paged_transport(pages, seen):
    """Serve ``pages`` in order, keyed by the ``page`` query param."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == USAGE_PATH
        assert request.headers["x-api-key"] == ADMIN_KEY
        seen.append(request.url.params.get("page"))
        index = int(request.url.params.get("page") or 0)
        return httpx.Response(200, json=pages[index])

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_fetch_follows_pagination():
    pages = [
        {"data": [_row("2025-03-01")], "has_more": True, "next_page": "1"},
        {"data": [_row("2025-03-15", input_tokens=2000, output_tokens=1000)], "has_more": True, "next_page": "2"},
        {"data": [_row("2026-01-01", input_tokens=99_999)], "has_more": False, "next_page": None},
    ]
    seen = []

    usage = await fetch_admin_usage(ADMIN_KEY, 2025, transport=_paged_transport(pages, seen))

    assert seen == [None, "1", "2"]
    assert usage.data_source == "admin-api"
    assert usage.total_tokens == 4500
    assert usage.total_cost == Decimal("0.1575")
    assert [m.month for m in usage.monthly_breakdown] == ["Mar"]


@pytest.mark.asyncio
async def test_upstream_cost_is_preferred():
    pages = [{"data": [_row("2025-05-05", cost_usd="2.50")], "has_more": False}]

    usage = await fetch_admin_usage(ADMIN_KEY, 2025, transport=_paged_transport(pages, []))

    assert usage.total_cost == Decimal("2.50")


@pytest.mark.asyncio
async def test_stops_when_next_page_missing():
    pages = [{"data": [_row("2025-01-01")], "has_more": True, "next_page": None}]
    seen = []

    client = AnthropicUsageClient(ADMIN_KEY, transport=_paged_transport(pages, seen))
    records = await client.fetch_records(2025)

    assert seen == [None]
    assert len(records) == 1


@pytest.mark.asyncio
async def test_page_cap_aborts():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [], "has_more": True, "next_page": "again"})

    client = AnthropicUsageClient(ADMIN_KEY, max_pages=3, transport=httpx.MockTransport(handler))

    with pytest.raises(UpstreamError):
        await client.fetch_records(2025)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code, body, exc_type, message",
    [
        (401, {}, UpstreamAuthError, "Invalid API key. Please check your Admin API key."),
        (403, {}, UpstreamForbiddenError, None),
        (500, {"error": {"message": "overloaded"}}, UpstreamError, "overloaded"),
        (418, {}, UpstreamError, "API error: 418"),
    ],
)
async def test_error_statuses(status_code, body, exc_type, message):
    transport = httpx.MockTransport(lambda request: httpx.Response(status_code, json=body))

    with pytest.raises(exc_type) as exc_info:
        await fetch_admin_usage(ADMIN_KEY, 2025, transport=transport)

    if message is not None:
        assert exc_info.value.message == message


@pytest.mark.asyncio
async def test_network_failure_is_upstream_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(UpstreamError):
        await fetch_admin_usage(ADMIN_KEY, 2025, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_empty_year_is_no_usage():
    pages = [{"data": [_row("2024-07-01")], "has_more": False}]

    with pytest.raises(NoUsageData):
        await fetch_admin_usage(ADMIN_KEY, 2025, transport=_paged_transport(pages, []))


def test_validate_admin_key():
    assert validate_admin_key("  sk-ant-admin-abc ") == "sk-ant-admin-abc"
    with pytest.raises(ValidationFailed):
        validate_admin_key("")
    with pytest.raises(ValidationFailed):
        validate_admin_key("sk-ant-api03-regular")


@pytest.mark.asyncio
async def test_malformed_rows_are_skipped():
    pages = [
        {
            "data": [
                _row("2025-03-01", input_tokens=100, output_tokens=50),
                _row("2025-03-02", input_tokens=-5000),
                _row("2025-03-03", cost_usd="-1.00"),
                _row("2025-03-04", cost_usd="NaN"),
                _row("2025-03-05", cost_usd="Infinity"),
            ],
            "has_more": False,
        }
    ]

    usage = await fetch_admin_usage(ADMIN_KEY, 2025, transport=_paged_transport(pages, []))

    assert usage.total_tokens == 150
    assert usage.total_cost >= 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>oops</html>"),
        httpx.Response(200, json=[{"date": "2025-01-01"}]),
        httpx.Response(200, json={"data": {"date": "2025-01-01"}, "has_more": False}),
    ],
)
async def test_unreadable_page_is_upstream_error(response):
    transport = httpx.MockTransport(lambda request: response)

    with pytest.raises(UpstreamError) as exc_info:
        await fetch_admin_usage(ADMIN_KEY, 2025, transport=transport)

    assert exc_info.value.message == "Usage API returned an invalid response"
