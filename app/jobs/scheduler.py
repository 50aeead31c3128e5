"""APScheduler setup and job registration."""

from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import settings
from app.jobs.reconcile_referrals import referral_reconciliation

scheduler = AsyncIOScheduler(timezone=settings.timezone)


def register_jobs() -> None:
    """Register all periodic jobs if not already present."""
    if scheduler.get_job("referral_reconciliation") is None:
        scheduler.add_job(
            referral_reconciliation,
            IntervalTrigger(
                minutes=max(1, settings.referral_reconcile_interval_minutes),
                timezone=settings.timezone,
            ),
            id="referral_reconciliation",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
