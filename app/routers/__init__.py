"""API router package."""

from app.routers import (
    accounts,
    admin,
    balance,
    generations,
    leaderboard,
    referrals,
    webhooks,
)

__all__ = [
    "accounts",
    "admin",
    "balance",
    "generations",
    "leaderboard",
    "referrals",
    "webhooks",
]
