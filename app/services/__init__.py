"""Service package exports with lazy loading."""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORTS = {
    "AccountService": "app.services.account_service",
    "AdminService": "app.services.admin_service",
    "GenerationService": "app.services.generation_service",
    "InMemoryLedgerStore": "app.services.memory_store",
    "LeaderboardService": "app.services.leaderboard_service",
    "LedgerService": "app.services.ledger_service",
    "LedgerStore": "app.services.ledger_store",
    "ReferralService": "app.services.referral_service",
    "SupabaseLedgerStore": "app.services.ledger_store",
    "SupabaseService": "app.services.common",
    "WebhookService": "app.services.webhook_service",
}

__all__ = sorted(_EXPORTS.keys())


def __getattr__(name: str) -> Any:
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = import_module(_EXPORTS[name])
    return getattr(module, name)
