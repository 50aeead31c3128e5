"""Pending referral reconciliation job."""

from __future__ import annotations

import asyncio
import logging

from app.dependencies import get_balance_projection, get_ledger_store
from app.services.ledger_service import LedgerService
from app.services.referral_service import ReferralService

logger = logging.getLogger(__name__)


async def referral_reconciliation() -> int:
    """Validate pending referrals whose referred user has since generated a logo."""
    store = get_ledger_store()
    ledger = LedgerService(store, projection=get_balance_projection())
    referrals = ReferralService(store, ledger)

    # Store calls are blocking; keep them off the event loop.
    validated = await asyncio.to_thread(referrals.reconcile_pending)
    logger.info("referral_reconciliation completed with %s validated referrals", validated)
    return validated
