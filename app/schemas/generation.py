"""Logo generation schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class GenerationRecord(BaseModel):
    """A logo produced for an account after a successful debit."""

    id: str
    account_id: str
    prompt: str
    image_ref: str
    created_at: datetime


class GenerateRequest(BaseModel):
    """Request body for one logo generation."""

    prompt: str = Field(..., min_length=1)


class GenerateResponse(BaseModel):
    """A generated logo and the balance left after paying for it."""

    generation: GenerationRecord
    balance: int


class GenerationHistoryResponse(BaseModel):
    """A page of the account's generated logos, newest first."""

    generations: list[GenerationRecord]
    total: int
