"""Payment webhook schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from app.schemas.ledger import Transaction


class PaymentNotification(BaseModel):
    """Provider-agnostic top-up request extracted from a webhook body."""

    provider: str
    external_id: str = Field(..., min_length=1)
    account_ref: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)


class WebhookEvent(BaseModel):
    """Idempotency record for one provider delivery."""

    provider: str
    external_id: str
    account_ref: str | None = None
    amount: int
    processed: bool = True
    error: str | None = None
    created_at: datetime


class WebhookStatus(str, Enum):
    """What happened to a delivery."""

    CREDITED = "credited"
    ALREADY_PROCESSED = "already_processed"
    IGNORED = "ignored"
    UNRESOLVED = "unresolved"


class WebhookResult(BaseModel):
    """Acknowledgement returned to the provider."""

    received: bool = True
    status: WebhookStatus
    transaction: Transaction | None = None
