"""Pydantic schemas for the leaderboard endpoints."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from src.schemas.usage import Money


class LeaderboardEntryRead(BaseModel):
    """A stored entry together with its rank in the requested scope."""

    id: int
    user_id: int
    year: int
    month: Optional[int] = Field(default=None, description="NULL for the yearly total")
    total_tokens: int
    total_input_tokens: int
    total_output_tokens: int
    total_cost: Money
    submitted_at: Optional[datetime] = None
    x_username: str
    display_name: Optional[str] = None
    rank: int


class LeaderboardPage(BaseModel):
    entries: List[LeaderboardEntryRead]
    total: int = Field(..., description="Distinct users matching the scope and search")
    page: int
    page_size: int


class RankResponse(BaseModel):
    rank: int
    entry: LeaderboardEntryRead


class OptInBody(BaseModel):
    """Opt-in request; ``usage_data`` is validated by the service."""

    consent: bool = False
    usage_data: Optional[Dict[str, Any]] = None


class OptInResponse(BaseModel):
    success: bool = True
    rank: int
    message: str
