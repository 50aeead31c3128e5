"""Account registration endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status

from app.dependencies import (
    get_account_service,
    get_authenticated_user,
    get_current_account_id,
    get_current_user_email,
)
from app.schemas.user import AccountResponse, SignupRequest, SignupResponse
from app.services.account_service import AccountService

router = APIRouter()


@router.post("", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def register_account(
    payload: SignupRequest,
    user: Any = Depends(get_authenticated_user),
    service: AccountService = Depends(get_account_service),
) -> dict:
    """Create the ledger account for a freshly signed-up user."""
    result = service.create_account(
        account_id=get_current_account_id(user),
        email=get_current_user_email(user),
        referral_code=payload.referral_code,
    )
    return {
        "account": result.account.model_dump(),
        "referral_applied": result.referral is not None,
    }


@router.get("/me", response_model=AccountResponse)
def get_my_account(
    account_id: str = Depends(get_current_account_id),
    service: AccountService = Depends(get_account_service),
) -> dict:
    """Return the current user's account."""
    return service.get_account(account_id).model_dump()


@router.get("/resolve/{code}")
def resolve_referral_code(
    code: str,
    service: AccountService = Depends(get_account_service),
) -> dict:
    """Confirm that a referral link points at a real account."""
    account = service.resolve_referral_code(code)
    return {"referral_code": account.referral_code, "valid": True}
