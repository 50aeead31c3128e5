"""Balance and ledger history endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_current_account_id, get_ledger_service
from app.schemas.ledger import BalanceResponse, TransactionHistoryResponse
from app.services.ledger_service import LedgerService

router = APIRouter()


@router.get("", response_model=BalanceResponse)
def get_balance(
    projected: bool = Query(default=False),
    account_id: str = Depends(get_current_account_id),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    """Return the credit balance.

    ``projected=true`` serves the recently confirmed value for frequent
    polling (the navbar counter); the default reads the store.
    """
    if projected:
        return {
            "account_id": account_id,
            "balance": ledger.projected_balance(account_id),
            "projected": True,
        }
    return {"account_id": account_id, "balance": ledger.get_balance(account_id)}


@router.get("/transactions", response_model=TransactionHistoryResponse)
def get_transactions(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    account_id: str = Depends(get_current_account_id),
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict:
    """Return the current user's ledger entries, newest first."""
    entries, total = ledger.history(account_id, limit=limit, offset=offset)
    return {"entries": entries, "total": total, "balance": ledger.get_balance(account_id)}
