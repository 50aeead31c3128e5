"""Referral schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class ReferralStatus(str, Enum):
    """Referral lifecycle. ``pending`` moves to ``validated`` exactly once."""

    PENDING = "pending"
    VALIDATED = "validated"


class Referral(BaseModel):
    """Relationship between a referrer and the account they brought in."""

    id: str
    referrer_id: str
    referred_id: str
    valid: bool = False
    activity_confirmed: bool = False
    created_at: datetime
    validated_at: datetime | None = None

    @property
    def status(self) -> ReferralStatus:
        return ReferralStatus.VALIDATED if self.valid else ReferralStatus.PENDING


class ReferralStatsResponse(BaseModel):
    """Numbers shown on the referral dashboard card."""

    referral_code: str
    valid_referrals: int = 0
    credits_earned: int = 0


class ReferralValidationResponse(BaseModel):
    """Outcome of an explicit activity validation request."""

    validated: bool
    referral_id: str | None = None
