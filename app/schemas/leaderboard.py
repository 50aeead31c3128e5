"""Leaderboard schemas."""

from pydantic import BaseModel


class LeaderboardEntry(BaseModel):
    """One ranked account."""

    rank: int
    account_id: str
    display_email: str
    credits: int


class LeaderboardResponse(BaseModel):
    """Top accounts by balance."""

    leaders: list[LeaderboardEntry]
