"""Read-only leaderboard projection over account balances."""

from __future__ import annotations

from typing import Any

from app.services.ledger_store import LedgerStore


def mask_email(email: str | None) -> str:
    """Show enough of an address to recognise yourself, not to harvest it."""
    if not email or "@" not in email:
        return "anonymous"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class LeaderboardService:
    """Rank accounts by credit balance."""

    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    def leaderboard(self, limit: int = 10) -> list[dict[str, Any]]:
        """Return the top ``limit`` accounts, rank 1 first."""
        accounts = self.store.top_balances(limit=limit)
        return [
            {
                "rank": index + 1,
                "account_id": account.id,
                "display_email": mask_email(account.email),
                "credits": account.balance,
            }
            for index, account in enumerate(accounts)
        ]
