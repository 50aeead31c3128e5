"""Payment provider webhook endpoints.

Responses are 2xx whenever the delivery is recorded (credited, replayed,
ignored or parked for reconciliation) so providers stop retrying.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from app.config import settings
from app.dependencies import get_webhook_service
from app.schemas.webhook import WebhookResult
from app.services.webhook_service import WebhookService, verify_signature
from app.utils.errors import MalformedWebhookPayloadError

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNATURE_HEADER = "X-Webhook-Signature"


async def _handle(provider: str, request: Request, service: WebhookService) -> WebhookResult:
    body = await request.body()
    verify_signature(
        provider,
        settings.webhook_secret(provider),
        body,
        request.headers.get(SIGNATURE_HEADER),
        required=settings.is_production,
    )
    try:
        payload = json.loads(body or b"null")
    except ValueError as exc:
        logger.warning("Rejected %s webhook with invalid JSON", provider)
        raise MalformedWebhookPayloadError(provider, "body is not valid JSON") from exc

    return await run_in_threadpool(service.handle, provider, payload)


@router.post("/ramp", response_model=WebhookResult)
async def ramp_webhook(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
) -> WebhookResult:
    """Ramp Network purchase notifications."""
    return await _handle("ramp", request, service)


@router.post("/coinremitter", response_model=WebhookResult)
async def coinremitter_webhook(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
) -> WebhookResult:
    """CoinRemitter invoice notifications."""
    return await _handle("coinremitter", request, service)
