"""Repository layer package."""

from src.repositories.leaderboard_repo import LeaderboardRepo

__all__ = [
    "LeaderboardRepo",
]
