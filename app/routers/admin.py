"""Admin dashboard endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.dependencies import get_admin_service, get_current_account_id
from app.schemas.admin import AdminStatsResponse
from app.services.admin_service import AdminService

router = APIRouter()


@router.get("/stats", response_model=AdminStatsResponse)
def get_admin_stats(
    account_id: str = Depends(get_current_account_id),
    service: AdminService = Depends(get_admin_service),
) -> dict:
    """Return user and logo totals. Admins only."""
    service.require_admin(account_id)
    return service.overview()
