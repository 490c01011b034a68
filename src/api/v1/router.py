"""Version 1 API router."""
from fastapi import APIRouter

from src.api.v1.endpoints import auth, health, leaderboard, post, usage


api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(usage.router)
api_router.include_router(leaderboard.router)
api_router.include_router(auth.router)
api_router.include_router(post.router)
