"""Leaderboard participant model."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.db.base import Base


class LeaderboardUser(Base):
    """An opted-in user identified by their X handle."""

    __tablename__ = "leaderboard_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    x_username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    x_user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    entries: Mapped[list["LeaderboardEntry"]] = relationship(
        "LeaderboardEntry", back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<LeaderboardUser {self.id} @{self.x_username}>"
