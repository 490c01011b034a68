"""Liveness check."""
from __future__ import annotations

from fastapi import APIRouter

from src.core.config import settings


router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {"status": "ok", "env": settings.ENV, "year": settings.USAGE_YEAR}
