"""Referral endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.dependencies import get_current_account_id, get_ledger_store, get_referral_service
from app.schemas.referral import ReferralStatsResponse, ReferralValidationResponse
from app.services.ledger_store import LedgerStore
from app.services.referral_service import ReferralService

router = APIRouter()


@router.get("/stats", response_model=ReferralStatsResponse)
def get_referral_stats(
    account_id: str = Depends(get_current_account_id),
    store: LedgerStore = Depends(get_ledger_store),
    service: ReferralService = Depends(get_referral_service),
) -> dict:
    """Return the current user's referral code and validated referral totals."""
    account = store.get_account(account_id)
    return {"referral_code": account.referral_code, **service.stats(account_id)}


@router.post("/validate", response_model=ReferralValidationResponse)
def validate_referral(
    account_id: str = Depends(get_current_account_id),
    service: ReferralService = Depends(get_referral_service),
) -> dict:
    """Re-check whether the current user's referral has become valid."""
    referral = service.validate_referral_activity(account_id)
    return {"validated": referral is not None, "referral_id": referral.id if referral else None}
