"""Referral registration, activity validation and reward payout."""

from __future__ import annotations

import logging

from app.config import settings
from app.schemas.ledger import TransactionKind
from app.schemas.referral import Referral
from app.services.ledger_service import LedgerService
from app.services.ledger_store import LedgerStore
from app.utils.errors import AccountNotFoundError, AppError

logger = logging.getLogger(__name__)


def normalize_referral_code(code: str | None) -> str:
    """Codes are case-insensitive in links; stored uppercase."""
    return (code or "").strip().upper()


class ReferralService:
    """Drive referrals from ``pending`` to ``validated`` and pay the referrer.

    Validation and reward are two separate steps. The flip to ``validated``
    is a guarded store update, so concurrent triggers (a fresh generation and
    the reconciliation job) pay at most once. A failed payout leaves the
    referral validated and is logged for manual reconciliation; it is not
    retried.
    """

    def __init__(
        self,
        store: LedgerStore,
        ledger: LedgerService,
        reward_amount: int | None = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.reward_amount = (
            settings.referral_reward_credits if reward_amount is None else reward_amount
        )

    def register_referral(self, referred_id: str, referral_code: str | None) -> Referral | None:
        """Record who referred ``referred_id``. Never fails the signup."""
        code = normalize_referral_code(referral_code)
        if not code:
            return None

        try:
            referrer = self.store.get_account_by_referral_code(code)
        except AccountNotFoundError:
            logger.info("Ignoring unknown referral code %s for %s", code, referred_id)
            return None

        if referrer.id == referred_id:
            logger.info("Ignoring self-referral by %s", referred_id)
            return None

        referral = self.store.create_referral(referrer_id=referrer.id, referred_id=referred_id)
        if referral is None:
            logger.info("Account %s already has a referrer", referred_id)
            return None

        logger.info("Referral %s created: %s -> %s", referral.id, referrer.id, referred_id)
        return referral

    def validate_referral_activity(self, user_id: str) -> Referral | None:
        """Validate ``user_id``'s referral once they have generated a logo.

        Returns the referral when this call performed the transition, None
        for every no-op case (no activity yet, no referral, already valid,
        lost a concurrent race).
        """
        if self.store.count_generations(user_id) == 0:
            return None

        pending = self.store.get_pending_referral(user_id)
        if pending is None:
            return None

        referral = self.store.mark_referral_valid(pending.id)
        if referral is None:
            logger.debug("Referral %s already validated by another caller", pending.id)
            return None

        logger.info("Referral %s validated for %s", referral.id, user_id)
        self._pay_reward(referral)
        return referral

    def _pay_reward(self, referral: Referral) -> None:
        try:
            self.ledger.credit(
                referral.referrer_id,
                self.reward_amount,
                TransactionKind.EARNED,
                f"referral reward for {referral.referred_id}",
            )
        except Exception as exc:
            logger.error(
                "Referral reward reconciliation gap: referral=%s referrer=%s referred=%s "
                "amount=%s error=%s",
                referral.id,
                referral.referrer_id,
                referral.referred_id,
                self.reward_amount,
                getattr(exc, "code", type(exc).__name__),
                exc_info=not isinstance(exc, AppError),
            )

    def reconcile_pending(self, limit: int | None = None) -> int:
        """Validate pending referrals whose referred user has generated a logo.

        Only referrals with activity are fetched, so idle ones never crowd
        newer active ones out of the batch.
        """
        batch = self.store.list_active_pending_referrals(
            limit=limit or settings.referral_reconcile_batch_size
        )
        validated = 0
        for referral in batch:
            try:
                if self.validate_referral_activity(referral.referred_id) is not None:
                    validated += 1
            except Exception:
                logger.exception("Reconciling referral %s failed", referral.id)
        return validated

    def stats(self, referrer_id: str) -> dict[str, int]:
        """Return validated referral count and credits earned from them."""
        valid = self.store.count_valid_referrals(referrer_id)
        return {"valid_referrals": valid, "credits_earned": valid * self.reward_amount}
