"""Leaderboard opt-in and ranking queries."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.cache.decorators import cached, invalidate_cache
from src.core.config import settings
from src.core.exceptions import LeaderboardWriteError, NotOnLeaderboard, ValidationFailed
from src.repositories.leaderboard_repo import LeaderboardRepo, LeaderboardView
from src.schemas.leaderboard import (
    LeaderboardEntryRead,
    LeaderboardPage,
    OptInResponse,
    RankResponse,
)
from src.schemas.usage import UsageData
from src.services.aggregator import month_number


logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_opt_in(consent: bool, usage_payload: Optional[Mapping[str, Any]]) -> UsageData:
    if not consent:
        raise ValidationFailed("You must consent to join the leaderboard")
    if not isinstance(usage_payload, Mapping) or not _is_number(usage_payload.get("total_tokens")):
        raise ValidationFailed("Invalid usage data")
    payload = {
        "year": settings.USAGE_YEAR,
        "data_source": "local-files",
        "data_source_label": "",
        **dict(usage_payload),
    }
    try:
        return UsageData.model_validate(payload)
    except ValidationError as exc:
        logger.info("Rejected opt-in payload: %s", exc.errors())
        raise ValidationFailed("Invalid usage data") from exc


@invalidate_cache("leaderboard:*")
async def opt_in(
    db: AsyncSession,
    handle: str,
    consent: bool,
    usage_payload: Optional[Mapping[str, Any]],
    x_user_id: Optional[str] = None,
) -> OptInResponse:
    """Persist a user's yearly and monthly totals and return their yearly rank.

    The user row, the yearly entry and all monthly entries are written in one
    transaction; any failure rolls everything back.
    """

    usage = validate_opt_in(consent, usage_payload)
    repo = LeaderboardRepo(db)

    try:
        user = await repo.upsert_user(handle, x_user_id)
        await repo.upsert_entry(
            user.id,
            usage.year,
            None,
            usage.total_tokens,
            usage.total_input_tokens,
            usage.total_output_tokens,
            usage.total_cost,
        )
        for monthly in usage.monthly_breakdown:
            month = month_number(monthly.month)
            if month is None or monthly.total_tokens <= 0:
                continue
            await repo.upsert_entry(
                user.id,
                usage.year,
                month,
                monthly.total_tokens,
                monthly.input_tokens,
                monthly.output_tokens,
                monthly.cost,
            )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Leaderboard opt-in failed for @%s", handle)
        raise LeaderboardWriteError() from exc

    rank = await repo.yearly_rank(user.id, usage.year) or 0
    logger.info("@%s joined the %d leaderboard at #%d", handle, usage.year, rank)
    return OptInResponse(rank=rank, message=f"You're #{rank} on the leaderboard!")


async def get_leaderboard(
    db: AsyncSession,
    view: LeaderboardView = "year",
    year: Optional[int] = None,
    page: int = 1,
    search: Optional[str] = None,
) -> LeaderboardPage:
    """One ranked page of ``view``; cache hits and misses both come back as a model."""

    year = year or settings.USAGE_YEAR
    page = max(1, page)
    search = (search or "").strip() or None
    return LeaderboardPage.model_validate(await _cached_page(db, view, year, page, search))


@cached(key_prefix="leaderboard")
async def _cached_page(
    db: AsyncSession, view: LeaderboardView, year: int, page: int, search: Optional[str]
) -> LeaderboardPage:
    page_size = settings.LEADERBOARD_PAGE_SIZE

    repo = LeaderboardRepo(db)
    total = await repo.count_users(view, year, search)
    rows = await repo.ranked_page(
        view, year, limit=page_size, offset=(page - 1) * page_size, search=search
    )
    return LeaderboardPage(
        entries=[LeaderboardEntryRead.model_validate(row) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
    )


async def get_user_rank(db: AsyncSession, username: str, year: Optional[int] = None) -> RankResponse:
    year = year or settings.USAGE_YEAR
    row = await LeaderboardRepo(db).ranked_entry_for_handle(username, year)
    if row is None:
        raise NotOnLeaderboard()
    entry = LeaderboardEntryRead.model_validate(row)
    return RankResponse(rank=entry.rank, entry=entry)
