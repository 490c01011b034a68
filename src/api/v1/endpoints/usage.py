"""Endpoints producing aggregated usage from either data source."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, File, Query, Request, UploadFile

from src.core.config import settings
from src.core.exceptions import NoUsageData
from src.schemas.usage import AdminUsageBody, AggregateBody, UsageResponse
from src.services.aggregator import RawUsageRecord, aggregate_usage
from src.services.anthropic_usage import fetch_admin_usage
from src.services.limits import check_rate_limit, client_key
from src.services.local_logs import parse_uploaded_files


router = APIRouter(prefix="/usage", tags=["usage"])


@router.post("/claude", response_model=UsageResponse)
async def claude_admin_usage(body: AdminUsageBody, request: Request):
    await check_rate_limit(client_key(request), scope="usage")
    usage = await fetch_admin_usage(body.admin_api_key, body.year)
    return UsageResponse(data=usage)


@router.post("/local", response_model=UsageResponse)
async def local_files_usage(
    request: Request,
    files: Optional[List[UploadFile]] = File(default=None),
    year: Optional[int] = Query(default=None),
):
    await check_rate_limit(client_key(request), scope="usage")

    payload: List[tuple[str, bytes]] = []
    for upload in files or []:
        data = await upload.read()
        await upload.close()
        payload.append((upload.filename or "upload.jsonl", data))

    usage = parse_uploaded_files(payload, year)
    return UsageResponse(data=usage)


@router.post("/aggregate", response_model=UsageResponse)
async def aggregate_records(body: AggregateBody):
    year = body.year or settings.USAGE_YEAR
    records = [
        RawUsageRecord(
            model=item.model,
            input_tokens=item.input_tokens,
            output_tokens=item.output_tokens,
            cache_creation_tokens=item.cache_creation_tokens,
            cache_read_tokens=item.cache_read_tokens,
            timestamp=item.timestamp,
            cost=item.cost,
        )
        for item in body.records
    ]
    usage = aggregate_usage(records, year, body.data_source)
    if usage.is_empty:
        raise NoUsageData(f"No token usage found for {year}.")
    return UsageResponse(data=usage)
