"""Public leaderboard endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_db_session
from src.auth.session import XSession, require_x_session
from src.repositories.leaderboard_repo import LeaderboardView
from src.schemas.leaderboard import LeaderboardPage, OptInBody, OptInResponse, RankResponse
from src.services.leaderboard import get_leaderboard, get_user_rank, opt_in
from src.services.limits import check_rate_limit, client_key


router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


@router.get("", response_model=LeaderboardPage)
async def leaderboard_page(
    view: LeaderboardView = Query(default="year"),
    page: int = Query(default=1, ge=1),
    search: Optional[str] = Query(default=None, max_length=64),
    year: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
):
    return await get_leaderboard(db, view=view, year=year, page=page, search=search)


@router.get("/rank/{username}", response_model=RankResponse)
async def leaderboard_rank(
    username: str,
    year: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
):
    return await get_user_rank(db, username, year)


@router.post("/opt-in", response_model=OptInResponse)
async def leaderboard_opt_in(
    body: OptInBody,
    request: Request,
    session: XSession = Depends(require_x_session),
    db: AsyncSession = Depends(get_db_session),
):
    await check_rate_limit(client_key(request, session.username), scope="opt-in")
    return await opt_in(
        db,
        session.username,
        body.consent,
        body.usage_data,
        x_user_id=session.user_id,
    )
