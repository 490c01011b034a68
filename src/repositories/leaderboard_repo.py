"""Repository helpers for the public leaderboard."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Literal, Optional

from sqlalchemy import Select, distinct, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models.leaderboard_entry import LeaderboardEntry
from src.db.models.leaderboard_user import LeaderboardUser

LeaderboardView = Literal["year", "all-time", "monthly"]

_UPSERT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def scope_filters(view: LeaderboardView, year: int) -> List[Any]:
    """WHERE clauses selecting the rows that compete with each other in ``view``."""

    if view == "all-time":
        return [LeaderboardEntry.month.is_(None)]
    if view == "monthly":
        return [LeaderboardEntry.year == year, LeaderboardEntry.month.is_not(None)]
    return [LeaderboardEntry.year == year, LeaderboardEntry.month.is_(None)]


def _handle_matches(column: Any, search: str) -> Any:
    return func.lower(column).contains(search.lower(), autoescape=True)


class LeaderboardRepo:
    """Data-access helpers for :class:`LeaderboardUser` and :class:`LeaderboardEntry`."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _insert(self, model: Any):
        """Dialect ``INSERT`` supporting ``ON CONFLICT DO UPDATE``."""

        return _UPSERT_INSERTS[self.session.get_bind().dialect.name](model)

    async def get_user_by_handle(self, handle: str) -> LeaderboardUser | None:
        result = await self.session.execute(
            select(LeaderboardUser)
            .where(func.lower(LeaderboardUser.x_username) == handle.lower())
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def upsert_user(
        self,
        handle: str,
        x_user_id: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> LeaderboardUser:
        existing = await self.get_user_by_handle(handle)
        if existing is not None:
            handle = existing.x_username

        stmt = self._insert(LeaderboardUser).values(
            x_username=handle, x_user_id=x_user_id, display_name=display_name
        )
        # Keep a previously linked id when the caller does not know it
        stmt = stmt.on_conflict_do_update(
            index_elements=["x_username"],
            set_={
                "x_user_id": func.coalesce(stmt.excluded.x_user_id, LeaderboardUser.x_user_id),
                "display_name": func.coalesce(
                    stmt.excluded.display_name, LeaderboardUser.display_name
                ),
            },
        )
        user_id = (await self.session.execute(stmt.returning(LeaderboardUser.id))).scalar_one()
        return await self.session.get(LeaderboardUser, user_id, populate_existing=True)

    async def get_entry(
        self, user_id: int, year: int, month: Optional[int]
    ) -> LeaderboardEntry | None:
        month_clause = (
            LeaderboardEntry.month.is_(None) if month is None else LeaderboardEntry.month == month
        )
        result = await self.session.execute(
            select(LeaderboardEntry)
            .where(
                LeaderboardEntry.user_id == user_id,
                LeaderboardEntry.year == year,
                month_clause,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def upsert_entry(
        self,
        user_id: int,
        year: int,
        month: Optional[int],
        total_tokens: int,
        total_input_tokens: int,
        total_output_tokens: int,
        total_cost: Decimal,
    ) -> LeaderboardEntry:
        """Insert the entry or overwrite its totals; never accumulates."""

        totals = {
            "total_tokens": total_tokens,
            "total_input_tokens": total_input_tokens,
            "total_output_tokens": total_output_tokens,
            "total_cost": total_cost,
            "submitted_at": datetime.now(timezone.utc),
        }
        stmt = self._insert(LeaderboardEntry).values(
            user_id=user_id, year=year, month=month, **totals
        )
        if month is None:
            # Yearly rows are unique through the partial index, NULLs never collide
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id", "year"],
                index_where=LeaderboardEntry.month.is_(None),
                set_=totals,
            )
        else:
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id", "year", "month"],
                set_=totals,
            )
        entry_id = (await self.session.execute(stmt.returning(LeaderboardEntry.id))).scalar_one()
        return await self.session.get(LeaderboardEntry, entry_id, populate_existing=True)

    def _ranked(self, view: LeaderboardView, year: int):
        rank = func.rank().over(order_by=LeaderboardEntry.total_tokens.desc())
        return (
            select(
                LeaderboardEntry.id.label("id"),
                LeaderboardEntry.user_id.label("user_id"),
                LeaderboardEntry.year.label("year"),
                LeaderboardEntry.month.label("month"),
                LeaderboardEntry.total_tokens.label("total_tokens"),
                LeaderboardEntry.total_input_tokens.label("total_input_tokens"),
                LeaderboardEntry.total_output_tokens.label("total_output_tokens"),
                LeaderboardEntry.total_cost.label("total_cost"),
                LeaderboardEntry.submitted_at.label("submitted_at"),
                LeaderboardUser.x_username.label("x_username"),
                LeaderboardUser.display_name.label("display_name"),
                rank.label("rank"),
            )
            .join(LeaderboardUser, LeaderboardUser.id == LeaderboardEntry.user_id)
            .where(*scope_filters(view, year))
            .subquery("ranked")
        )

    async def count_users(
        self, view: LeaderboardView, year: int, search: Optional[str] = None
    ) -> int:
        query: Select = (
            select(func.count(distinct(LeaderboardEntry.user_id)))
            .select_from(LeaderboardEntry)
            .join(LeaderboardUser, LeaderboardUser.id == LeaderboardEntry.user_id)
            .where(*scope_filters(view, year))
        )
        if search:
            query = query.where(_handle_matches(LeaderboardUser.x_username, search))
        value = (await self.session.execute(query)).scalar_one()
        return int(value or 0)

    async def ranked_page(
        self,
        view: LeaderboardView,
        year: int,
        limit: int,
        offset: int,
        search: Optional[str] = None,
    ) -> List[dict]:
        """Rows ranked across the whole scope, then filtered by ``search``.

        Ties share a rank; within a tie the earliest submission is listed first.
        """

        ranked = self._ranked(view, year)
        query = select(ranked)
        if search:
            query = query.where(_handle_matches(ranked.c.x_username, search))
        query = (
            query.order_by(ranked.c.rank, ranked.c.submitted_at, ranked.c.id)
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        return [dict(row) for row in result.mappings().all()]

    async def ranked_entry_for_handle(self, handle: str, year: int) -> dict | None:
        ranked = self._ranked("year", year)
        result = await self.session.execute(
            select(ranked).where(func.lower(ranked.c.x_username) == handle.lower())
        )
        row = result.mappings().first()
        return dict(row) if row is not None else None

    async def yearly_rank(self, user_id: int, year: int) -> int | None:
        ranked = self._ranked("year", year)
        result = await self.session.execute(
            select(ranked.c.rank).where(ranked.c.user_id == user_id)
        )
        value = result.scalar_one_or_none()
        return int(value) if value is not None else None
