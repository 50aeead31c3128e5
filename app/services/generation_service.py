"""Pay-per-logo generation gate."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.config import settings
from app.schemas.generation import GenerationRecord
from app.services.ledger_service import LedgerService
from app.services.ledger_store import LedgerStore
from app.services.logo_generator import LogoGenerator
from app.services.referral_service import ReferralService
from app.utils.errors import ExternalServiceError, InvalidInputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResult:
    record: GenerationRecord
    balance: int


class GenerationService:
    """Debit a credit, call the generator, then keep or refund the credit."""

    def __init__(
        self,
        store: LedgerStore,
        ledger: LedgerService,
        generator: LogoGenerator,
        referrals: ReferralService | None = None,
        cost: int | None = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.generator = generator
        self.referrals = referrals
        self.cost = settings.generation_cost_credits if cost is None else cost

    def generate(self, account_id: str, prompt: str) -> GenerationResult:
        """Produce one logo for ``account_id``.

        The debit happens before the generator is called and is refunded if
        generation or persistence fails. No lock is held across the remote
        call.

        Raises:
            InvalidInputError: blank or overlong prompt; nothing is charged.
            InsufficientCreditsError: balance too low; generator not called.
            ExternalServiceError: generator or persistence failed; the credit
                was refunded.
        """
        prompt = self._clean_prompt(prompt)

        debit = self.ledger.debit(account_id, self.cost, "generated logo")

        try:
            image_ref = self.generator.generate(prompt)
            record = self.store.create_generation(account_id, prompt, image_ref)
        except Exception as exc:
            self._compensate(account_id, exc)
            if isinstance(exc, ExternalServiceError):
                raise
            raise ExternalServiceError() from exc

        logger.info("Generated logo %s for %s", record.id, account_id)
        self._check_referral(account_id)
        return GenerationResult(record=record, balance=debit.balance_after)

    def history(self, account_id: str, limit: int = 12, offset: int = 0) -> list[GenerationRecord]:
        """Return the account's logos, newest first."""
        return self.store.list_generations(account_id, limit=limit, offset=offset)

    def count(self, account_id: str) -> int:
        return self.store.count_generations(account_id)

    def _clean_prompt(self, prompt: str) -> str:
        cleaned = (prompt or "").strip()
        if not cleaned:
            raise InvalidInputError("Please enter a prompt")
        if len(cleaned) > settings.generation_max_prompt_length:
            raise InvalidInputError(
                f"Prompt must be at most {settings.generation_max_prompt_length} characters"
            )
        return cleaned

    def _compensate(self, account_id: str, cause: Exception) -> None:
        logger.warning("Logo generation failed for %s: %r; refunding", account_id, cause)
        try:
            self.ledger.refund(account_id, self.cost, "generation failed")
        except Exception:
            logger.exception(
                "Stranded debit: refund of %s credit(s) to %s failed", self.cost, account_id
            )

    def _check_referral(self, account_id: str) -> None:
        if self.referrals is None:
            return
        try:
            self.referrals.validate_referral_activity(account_id)
        except Exception:
            logger.exception("Referral validation after generation failed for %s", account_id)
