"""Database models package exports."""

from src.db.models.leaderboard_entry import LeaderboardEntry
from src.db.models.leaderboard_user import LeaderboardUser

__all__ = [
    "LeaderboardEntry",
    "LeaderboardUser",
]
