"""Ledger schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TransactionKind(str, Enum):
    """Why a balance moved."""

    SPENT = "spent"
    EARNED = "earned"
    PURCHASED = "purchased"
    REFUND = "refund"


class Account(BaseModel):
    """A user's credit account as stored in the ledger."""

    id: str
    email: str | None = None
    balance: int = Field(default=0, ge=0)
    referral_code: str
    referred_by: str | None = None
    role: str = "user"
    created_at: datetime


class Transaction(BaseModel):
    """One immutable ledger row. Amount is signed."""

    model_config = ConfigDict(frozen=True)

    id: str
    account_id: str
    amount: int
    kind: TransactionKind
    reason: str
    balance_after: int
    created_at: datetime


class BalanceResponse(BaseModel):
    """Balance for the current account; ``projected`` marks a cached read."""

    account_id: str
    balance: int
    projected: bool = False


class TransactionHistoryResponse(BaseModel):
    """A page of ledger history."""

    entries: list[Transaction]
    total: int
    balance: int
