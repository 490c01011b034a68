"""Client for the Anthropic organization usage report API."""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx

from src.core.config import settings
from src.core.exceptions import (
    NoUsageData,
    UpstreamAuthError,
    UpstreamError,
    UpstreamForbiddenError,
    ValidationFailed,
)
from src.schemas.usage import UsageData
from src.services.aggregator import RawUsageRecord, aggregate_usage, token_count


logger = logging.getLogger(__name__)

USAGE_PATH = "/v1/organizations/usage"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return f"API error: {response.status_code}"


def _to_decimal(value: Any) -> Optional[Decimal]:
    """Parse a reported cost. Unparseable values count as unknown; negative or non-finite ones are malformed."""

    if value is None:
        return None
    try:
        cost = Decimal(str(value))
    except InvalidOperation:
        return None
    if not cost.is_finite() or cost < 0:
        raise ValueError(f"invalid cost: {value!r}")
    return cost


def entry_to_record(entry: Dict[str, Any]) -> RawUsageRecord:
    """Convert one row of a usage page into a :class:`RawUsageRecord`."""

    day = date.fromisoformat(str(entry["date"])[:10])
    return RawUsageRecord(
        model=entry.get("model") or "unknown",
        input_tokens=token_count(entry.get("input_tokens")),
        output_tokens=token_count(entry.get("output_tokens")),
        cache_creation_tokens=token_count(entry.get("cache_creation_input_tokens")),
        cache_read_tokens=token_count(entry.get("cache_read_input_tokens")),
        timestamp=datetime(day.year, day.month, day.day, tzinfo=timezone.utc),
        cost=_to_decimal(entry.get("cost_usd")),
    )


class AnthropicUsageClient:
    """Pages through the usage report for a date range."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: Optional[str] = None,
        max_pages: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = (base_url or settings.ANTHROPIC_API_BASE).rstrip("/")
        self.max_pages = max_pages or settings.USAGE_MAX_PAGES
        self.timeout = timeout or settings.UPSTREAM_TIMEOUT_SECONDS
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": settings.ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    async def fetch_entries(self, start_date: date, end_date: date) -> List[Dict[str, Any]]:
        """Return every usage row between the two dates, following ``next_page``."""

        entries: List[Dict[str, Any]] = []
        next_page: Optional[str] = None
        pages = 0

        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        ) as client:
            while True:
                if pages >= self.max_pages:
                    logger.error("Usage API still reporting more data after %d pages", pages)
                    raise UpstreamError(
                        f"Usage API returned more than {self.max_pages} pages; aborting"
                    )

                params = {
                    "start_date": start_date.isoformat(),
                    "end_date": end_date.isoformat(),
                    "limit": str(settings.USAGE_PAGE_LIMIT),
                }
                if next_page:
                    params["page"] = next_page

                try:
                    response = await client.get(USAGE_PATH, params=params, headers=self._headers())
                except httpx.RequestError as exc:
                    raise UpstreamError(f"Usage API request failed: {exc}") from exc
                pages += 1

                if response.status_code == 401:
                    raise UpstreamAuthError("Invalid API key. Please check your Admin API key.")
                if response.status_code == 403:
                    raise UpstreamForbiddenError(
                        "Access denied. Make sure you are using an Admin API key with usage access."
                    )
                if response.status_code >= 400:
                    raise UpstreamError(_error_message(response), status_code=response.status_code)

                try:
                    body = response.json()
                except ValueError as exc:
                    raise UpstreamError("Usage API returned an invalid response") from exc
                if not isinstance(body, dict) or not isinstance(body.get("data") or [], list):
                    raise UpstreamError("Usage API returned an invalid response")
                entries.extend(body.get("data") or [])
                next_page = body.get("next_page")
                if not body.get("has_more") or not next_page:
                    break

        logger.info("Fetched %d usage rows in %d pages", len(entries), pages)
        return entries

    async def fetch_records(self, year: int) -> List[RawUsageRecord]:
        entries = await self.fetch_entries(date(year, 1, 1), date(year, 12, 31))
        records: List[RawUsageRecord] = []
        for entry in entries:
            try:
                records.append(entry_to_record(entry))
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed usage row: %r", entry)
        return records


def validate_admin_key(api_key: str) -> str:
    api_key = (api_key or "").strip()
    if not api_key:
        raise ValidationFailed("Admin API key is required")
    if not api_key.startswith(settings.ADMIN_KEY_PREFIX):
        raise ValidationFailed(
            "Invalid API key format. Admin API key should start with "
            f"{settings.ADMIN_KEY_PREFIX}"
        )
    return api_key


async def fetch_admin_usage(
    api_key: str,
    year: Optional[int] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> UsageData:
    """Fetch and aggregate a year of usage for an Admin API key."""

    year = year or settings.USAGE_YEAR
    client = AnthropicUsageClient(validate_admin_key(api_key), transport=transport)
    records = await client.fetch_records(year)
    usage = aggregate_usage(records, year, "admin-api")
    if usage.is_empty:
        raise NoUsageData(f"No token usage found for {year} on this organization.")
    return usage
