"""Operator-facing aggregate counts."""

from __future__ import annotations

from typing import Any

from app.services.ledger_store import LedgerStore
from app.utils.errors import ForbiddenError

ADMIN_ROLE = "admin"


class AdminService:
    """Totals for the admin dashboard."""

    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    def require_admin(self, account_id: str) -> None:
        """Raise ForbiddenError unless ``account_id`` holds the admin role."""
        if self.store.get_account(account_id).role != ADMIN_ROLE:
            raise ForbiddenError("Admin access required")

    def overview(self) -> dict[str, Any]:
        return {
            "users": self.store.count_accounts(),
            "logos": self.store.count_all_generations(),
        }
