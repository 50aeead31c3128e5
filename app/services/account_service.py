"""Account registration and referral-code assignment."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from app.config import settings
from app.schemas.ledger import Account, TransactionKind
from app.schemas.referral import Referral
from app.services.ledger_service import LedgerService
from app.services.ledger_store import LedgerStore
from app.services.referral_service import ReferralService, normalize_referral_code
from app.utils.errors import AccountNotFoundError, ConflictError

logger = logging.getLogger(__name__)

# No 0/O or 1/I so codes survive being read aloud or retyped.
REFERRAL_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERRAL_CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 100


def random_referral_code(length: int = REFERRAL_CODE_LENGTH) -> str:
    """Return an uppercase referral code."""
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(length))


@dataclass(frozen=True)
class SignupResult:
    account: Account
    referral: Referral | None


class AccountService:
    """Create accounts, grant the signup bonus and attach referrals."""

    def __init__(
        self,
        store: LedgerStore,
        ledger: LedgerService,
        referrals: ReferralService,
        signup_bonus: int | None = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.referrals = referrals
        self.signup_bonus = (
            settings.signup_bonus_credits if signup_bonus is None else signup_bonus
        )

    def create_account(
        self,
        account_id: str,
        email: str | None = None,
        referral_code: str | None = None,
    ) -> SignupResult:
        """Register ``account_id``.

        The starting balance is granted through the ledger so the account's
        transactions explain it. An unknown or unusable referral code does
        not fail the signup.
        """
        account = self._insert_with_unique_code(account_id, email)

        if self.signup_bonus > 0:
            self.ledger.credit(account.id, self.signup_bonus, TransactionKind.EARNED, "signup bonus")

        referral = self.referrals.register_referral(account.id, referral_code)
        logger.info(
            "Account %s created (referred=%s)", account.id, referral.referrer_id if referral else None
        )
        return SignupResult(account=self.store.get_account(account.id), referral=referral)

    def get_account(self, account_id: str) -> Account:
        return self.store.get_account(account_id)

    def resolve_referral_code(self, code: str) -> Account:
        """Look up the owner of a referral link."""
        return self.store.get_account_by_referral_code(normalize_referral_code(code))

    def _insert_with_unique_code(self, account_id: str, email: str | None) -> Account:
        for _attempt in range(MAX_CODE_ATTEMPTS):
            code = random_referral_code()
            try:
                return self.store.create_account(account_id, email, code)
            except ConflictError as exc:
                if self._account_exists(account_id):
                    raise ConflictError(
                        "Account already registered", code="ALREADY_REGISTERED"
                    ) from exc
                continue
        raise RuntimeError("Failed to generate a unique referral code after 100 attempts")

    def _account_exists(self, account_id: str) -> bool:
        try:
            self.store.get_account(account_id)
        except AccountNotFoundError:
            return False
        return True
