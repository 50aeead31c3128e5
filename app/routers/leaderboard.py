"""Leaderboard endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_leaderboard_service
from app.schemas.leaderboard import LeaderboardResponse
from app.services.leaderboard_service import LeaderboardService

router = APIRouter()


@router.get("", response_model=LeaderboardResponse)
def get_leaderboard(
    limit: int = Query(default=10, ge=1, le=100),
    service: LeaderboardService = Depends(get_leaderboard_service),
) -> dict:
    """Return the accounts holding the most credits."""
    return {"leaders": service.leaderboard(limit=limit)}
