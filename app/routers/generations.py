"""Logo generation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from app.dependencies import get_current_account_id, get_generation_service
from app.schemas.generation import GenerateRequest, GenerateResponse, GenerationHistoryResponse
from app.services.generation_service import GenerationService

router = APIRouter()


@router.post("", response_model=GenerateResponse, status_code=status.HTTP_201_CREATED)
def generate_logo(
    payload: GenerateRequest,
    account_id: str = Depends(get_current_account_id),
    service: GenerationService = Depends(get_generation_service),
) -> dict:
    """Spend one credit on a new logo."""
    result = service.generate(account_id, payload.prompt)
    return {"generation": result.record, "balance": result.balance}


@router.get("", response_model=GenerationHistoryResponse)
def list_generations(
    limit: int = Query(default=12, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    account_id: str = Depends(get_current_account_id),
    service: GenerationService = Depends(get_generation_service),
) -> dict:
    """Return the current user's logos, newest first."""
    generations = service.history(account_id, limit=limit, offset=offset)
    return {"generations": generations, "total": service.count(account_id)}
