"""Payment provider webhook ingestion."""

from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Callable
from typing import Any

from app.config import settings
from app.schemas.ledger import Account, TransactionKind
from app.schemas.webhook import PaymentNotification, WebhookResult, WebhookStatus
from app.services.ledger_service import LedgerService
from app.services.ledger_store import LedgerStore
from app.services.referral_service import normalize_referral_code
from app.utils.errors import (
    AccountNotFoundError,
    AppError,
    MalformedWebhookPayloadError,
    UnauthorizedError,
    WebhookNotConfiguredError,
)

logger = logging.getLogger(__name__)

RAMP_CREDITING_EVENTS = {"RELEASED"}
COINREMITTER_PAID_STATUSES = {"paid", "over paid"}


def parse_credit_amount(provider: str, value: Any) -> int:
    """Accept positive integers (or ASCII digit strings) up to WEBHOOK_MAX_CREDITS."""
    if isinstance(value, bool):
        raise MalformedWebhookPayloadError(provider, "amount must be a whole number")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, float) and value.is_integer():
        amount = int(value)
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        amount = int(value.strip())
    else:
        raise MalformedWebhookPayloadError(provider, "amount must be a whole number")

    if amount <= 0:
        raise MalformedWebhookPayloadError(provider, "amount must be positive")
    if amount > settings.webhook_max_credits:
        raise MalformedWebhookPayloadError(
            provider, f"amount exceeds {settings.webhook_max_credits} credits"
        )
    return amount


def _require_str(provider: str, value: Any, field: str) -> str:
    if isinstance(value, (int, str)) and not isinstance(value, bool) and str(value).strip():
        return str(value).strip()
    raise MalformedWebhookPayloadError(provider, f"missing {field}")


def normalize_ramp(payload: dict[str, Any]) -> PaymentNotification | None:
    """Ramp Network purchase event; only ``RELEASED`` purchases top up."""
    if not isinstance(payload, dict):
        raise MalformedWebhookPayloadError("ramp", "body must be an object")

    event_type = str(payload.get("type") or "").upper()
    purchase = payload.get("purchase")
    if not isinstance(purchase, dict):
        raise MalformedWebhookPayloadError("ramp", "missing purchase")
    if event_type not in RAMP_CREDITING_EVENTS:
        return None

    metadata = purchase.get("metadata")
    if not isinstance(metadata, dict):
        raise MalformedWebhookPayloadError("ramp", "missing purchase.metadata")

    return PaymentNotification(
        provider="ramp",
        external_id=_require_str("ramp", purchase.get("id"), "purchase.id"),
        account_ref=_require_str("ramp", metadata.get("account_ref"), "metadata.account_ref"),
        amount=parse_credit_amount("ramp", metadata.get("credits")),
    )


def normalize_coinremitter(payload: dict[str, Any]) -> PaymentNotification | None:
    """CoinRemitter invoice notification; account and credits ride in custom data."""
    if not isinstance(payload, dict):
        raise MalformedWebhookPayloadError("coinremitter", "body must be an object")

    status = str(payload.get("status") or "").strip().lower()
    external_id = _require_str("coinremitter", payload.get("id"), "id")
    if status not in COINREMITTER_PAID_STATUSES:
        return None

    return PaymentNotification(
        provider="coinremitter",
        external_id=external_id,
        account_ref=_require_str("coinremitter", payload.get("custom_data1"), "custom_data1"),
        amount=parse_credit_amount("coinremitter", payload.get("custom_data2")),
    )


NORMALIZERS: dict[str, Callable[[dict[str, Any]], PaymentNotification | None]] = {
    "ramp": normalize_ramp,
    "coinremitter": normalize_coinremitter,
}


def verify_signature(
    provider: str,
    secret: str,
    body: bytes,
    signature: str | None,
    required: bool = False,
) -> None:
    """Check an HMAC-SHA256 hex digest of the raw body when a secret is set.

    With ``required`` (production) a missing secret refuses the delivery
    instead of accepting it unsigned.
    """
    if not secret:
        if required:
            raise WebhookNotConfiguredError(provider)
        return
    if not signature:
        raise UnauthorizedError(f"Missing {provider} webhook signature")
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected.encode(), signature.strip().lower().encode()):
        raise UnauthorizedError(f"Invalid {provider} webhook signature")


def _error_label(exc: Exception) -> str:
    if isinstance(exc, AppError):
        return exc.code.lower()
    return type(exc).__name__


class WebhookService:
    """Turn provider notifications into exactly-once purchased credits."""

    def __init__(self, store: LedgerStore, ledger: LedgerService) -> None:
        self.store = store
        self.ledger = ledger

    def handle(self, provider: str, payload: dict[str, Any]) -> WebhookResult:
        """Normalize a raw body and ingest it.

        Validation happens before the idempotency claim, so a malformed
        delivery never burns its ``external_id``.
        """
        normalizer = NORMALIZERS.get(provider)
        if normalizer is None:
            raise MalformedWebhookPayloadError(provider, "unknown provider")

        notification = normalizer(payload)
        if notification is None:
            logger.info("Ignoring non-crediting %s webhook", provider)
            return WebhookResult(status=WebhookStatus.IGNORED)
        return self.ingest(notification)

    def ingest(self, notification: PaymentNotification) -> WebhookResult:
        """Claim the event, resolve the account and credit it once."""
        provider = notification.provider
        external_id = notification.external_id

        accepted = self.store.record_webhook_event(
            provider,
            external_id,
            notification.amount,
            account_ref=notification.account_ref,
        )
        if not accepted:
            logger.info("Duplicate %s webhook %s acknowledged", provider, external_id)
            return WebhookResult(status=WebhookStatus.ALREADY_PROCESSED)

        try:
            account = self._resolve_account(notification.account_ref)
        except AccountNotFoundError:
            logger.error(
                "Unresolvable %s webhook %s: account_ref=%s amount=%s needs manual reconciliation",
                provider,
                external_id,
                notification.account_ref,
                notification.amount,
            )
            self._flag(provider, external_id, "account_not_found")
            return WebhookResult(status=WebhookStatus.UNRESOLVED)
        except Exception as exc:
            logger.exception("Resolving %s webhook %s failed after claim", provider, external_id)
            self._flag(provider, external_id, _error_label(exc))
            raise

        try:
            transaction = self.ledger.credit(
                account.id,
                notification.amount,
                TransactionKind.PURCHASED,
                f"{provider} top-up {external_id}",
            )
        except Exception as exc:
            error = _error_label(exc)
            logger.error(
                "Crediting %s webhook %s to %s failed after claim: %s",
                provider,
                external_id,
                account.id,
                error,
                exc_info=not isinstance(exc, AppError),
            )
            self._flag(provider, external_id, error)
            raise

        return WebhookResult(status=WebhookStatus.CREDITED, transaction=transaction)

    def _resolve_account(self, account_ref: str) -> Account:
        try:
            return self.store.get_account(account_ref)
        except AccountNotFoundError:
            return self.store.get_account_by_referral_code(normalize_referral_code(account_ref))

    def _flag(self, provider: str, external_id: str, error: str) -> None:
        # The claim is already burnt; a lost flag only costs the reconciliation note.
        try:
            self.store.flag_webhook_event(provider, external_id, error)
        except Exception:
            logger.exception(
                "Could not flag %s webhook %s with %s", provider, external_id, error
            )
