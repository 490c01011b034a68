"""Per-period token totals submitted to the leaderboard."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    SmallInteger,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.db.base import Base


class LeaderboardEntry(Base):
    """One row per (user, year, month); ``month`` is NULL for the yearly total."""

    __tablename__ = "leaderboard_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("leaderboard_users.id", ondelete="CASCADE"), nullable=False
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    total_tokens: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_input_tokens: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_output_tokens: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_cost: Mapped[Decimal] = mapped_column(
        Numeric(14, 6), nullable=False, default=Decimal("0")
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user: Mapped["LeaderboardUser"] = relationship("LeaderboardUser", back_populates="entries")

    __table_args__ = (
        UniqueConstraint("user_id", "year", "month", name="uq_entry_user_year_month"),
        # NULL months never collide under the constraint above
        Index(
            "uq_entry_user_year_yearly",
            "user_id",
            "year",
            unique=True,
            postgresql_where=text("month IS NULL"),
            sqlite_where=text("month IS NULL"),
        ),
        Index("ix_entries_scope_tokens", "year", "month", "total_tokens"),
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<LeaderboardEntry user={self.user_id} {self.year}/{self.month} tokens={self.total_tokens}>"
