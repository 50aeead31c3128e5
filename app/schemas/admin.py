"""Admin dashboard schemas."""

from pydantic import BaseModel


class AdminStatsResponse(BaseModel):
    """Platform totals."""

    users: int
    logos: int
