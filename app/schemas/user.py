"""Account-related schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class SignupRequest(BaseModel):
    """Registration of an authenticated user, optionally via a referral link."""

    referral_code: str | None = Field(default=None, max_length=32)


class AccountResponse(BaseModel):
    """Public account representation."""

    id: str
    email: str | None = None
    balance: int
    referral_code: str
    referred_by: str | None = None
    role: str = "user"
    created_at: datetime


class SignupResponse(BaseModel):
    """Result of registering an account."""

    account: AccountResponse
    referral_applied: bool = False
