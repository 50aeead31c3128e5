"""Background job modules for periodic ledger tasks."""

from app.jobs.reconcile_referrals import referral_reconciliation

__all__ = [
    "referral_reconciliation",
]
