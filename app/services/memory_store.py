"""Process-local ledger store for tests and local development."""

from __future__ import annotations

import threading
import uuid
from collections import defaultdict

from app.schemas.generation import GenerationRecord
from app.schemas.ledger import Account, Transaction, TransactionKind
from app.schemas.referral import Referral
from app.schemas.webhook import WebhookEvent
from app.services.ledger_store import LedgerStore
from app.utils.errors import AccountNotFoundError, ConflictError, InsufficientCreditsError
from app.utils.time import now_utc


class InMemoryLedgerStore(LedgerStore):
    """Ledger store kept in dictionaries.

    ``apply_delta`` holds a per-account lock for the read-check-write, so two
    debits against the same account never interleave. Index-level operations
    (account creation, webhook claims, referral writes) share one store lock.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._accounts: dict[str, Account] = {}
        self._account_locks: dict[str, threading.Lock] = {}
        self._codes: dict[str, str] = {}
        self._transactions: dict[str, list[Transaction]] = defaultdict(list)
        self._generations: dict[str, list[GenerationRecord]] = defaultdict(list)
        self._referrals: dict[str, Referral] = {}
        self._referral_by_referred: dict[str, str] = {}
        self._webhook_events: dict[tuple[str, str], WebhookEvent] = {}

    def _account_lock(self, account_id: str) -> threading.Lock:
        with self._lock:
            lock = self._account_locks.get(account_id)
        if lock is None:
            raise AccountNotFoundError(account_id)
        return lock

    def get_account(self, account_id: str) -> Account:
        with self._lock:
            account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account.model_copy()

    def get_account_by_referral_code(self, code: str) -> Account:
        with self._lock:
            account_id = self._codes.get(code)
        if account_id is None:
            raise AccountNotFoundError(code)
        return self.get_account(account_id)

    def create_account(
        self,
        account_id: str,
        email: str | None,
        referral_code: str,
        role: str = "user",
    ) -> Account:
        with self._lock:
            if account_id in self._accounts or referral_code in self._codes:
                raise ConflictError("Account or referral code already exists")
            account = Account(
                id=account_id,
                email=email,
                balance=0,
                referral_code=referral_code,
                role=role,
                created_at=now_utc(),
            )
            self._accounts[account_id] = account
            self._account_locks[account_id] = threading.Lock()
            self._codes[referral_code] = account_id
        return account.model_copy()

    def apply_delta(
        self,
        account_id: str,
        amount: int,
        kind: TransactionKind,
        reason: str,
    ) -> tuple[int, Transaction]:
        with self._account_lock(account_id):
            account = self._accounts[account_id]
            new_balance = account.balance + amount
            if new_balance < 0:
                raise InsufficientCreditsError(required=-amount, available=account.balance)

            transaction = Transaction(
                id=str(uuid.uuid4()),
                account_id=account_id,
                amount=amount,
                kind=kind,
                reason=reason,
                balance_after=new_balance,
                created_at=now_utc(),
            )
            self._accounts[account_id] = account.model_copy(update={"balance": new_balance})
            self._transactions[account_id].append(transaction)
        return new_balance, transaction

    def list_transactions(
        self, account_id: str, limit: int = 50, offset: int = 0
    ) -> tuple[list[Transaction], int]:
        with self._account_lock(account_id):
            entries = list(reversed(self._transactions[account_id]))
        return entries[offset : offset + limit], len(entries)

    def record_webhook_event(
        self,
        provider: str,
        external_id: str,
        amount: int,
        account_ref: str | None = None,
    ) -> bool:
        key = (provider, external_id)
        with self._lock:
            if key in self._webhook_events:
                return False
            self._webhook_events[key] = WebhookEvent(
                provider=provider,
                external_id=external_id,
                account_ref=account_ref,
                amount=amount,
                processed=True,
                created_at=now_utc(),
            )
        return True

    def flag_webhook_event(self, provider: str, external_id: str, error: str) -> None:
        key = (provider, external_id)
        with self._lock:
            event = self._webhook_events.get(key)
            if event is not None:
                self._webhook_events[key] = event.model_copy(update={"error": error})

    def get_webhook_event(self, provider: str, external_id: str) -> WebhookEvent | None:
        with self._lock:
            return self._webhook_events.get((provider, external_id))

    def create_generation(self, account_id: str, prompt: str, image_ref: str) -> GenerationRecord:
        self.get_account(account_id)
        record = GenerationRecord(
            id=str(uuid.uuid4()),
            account_id=account_id,
            prompt=prompt,
            image_ref=image_ref,
            created_at=now_utc(),
        )
        with self._lock:
            self._generations[account_id].append(record)
        return record

    def count_generations(self, account_id: str) -> int:
        with self._lock:
            return len(self._generations.get(account_id, []))

    def list_generations(
        self, account_id: str, limit: int = 12, offset: int = 0
    ) -> list[GenerationRecord]:
        with self._lock:
            records = list(reversed(self._generations.get(account_id, [])))
        return records[offset : offset + limit]

    def create_referral(self, referrer_id: str, referred_id: str) -> Referral | None:
        with self._lock:
            if referred_id in self._referral_by_referred:
                return None
            referral = Referral(
                id=str(uuid.uuid4()),
                referrer_id=referrer_id,
                referred_id=referred_id,
                created_at=now_utc(),
            )
            self._referrals[referral.id] = referral
            self._referral_by_referred[referred_id] = referral.id
            account_lock = self._account_locks.get(referred_id)
            if account_lock is not None:
                # Store lock, then account lock; apply_delta never nests them the other way.
                with account_lock:
                    referred = self._accounts[referred_id]
                    self._accounts[referred_id] = referred.model_copy(
                        update={"referred_by": referrer_id}
                    )
        return referral

    def get_pending_referral(self, referred_id: str) -> Referral | None:
        with self._lock:
            referral_id = self._referral_by_referred.get(referred_id)
            referral = self._referrals.get(referral_id) if referral_id else None
        if referral is None or referral.valid:
            return None
        return referral

    def mark_referral_valid(self, referral_id: str) -> Referral | None:
        with self._lock:
            referral = self._referrals.get(referral_id)
            if referral is None or referral.valid:
                return None
            validated = referral.model_copy(
                update={"valid": True, "activity_confirmed": True, "validated_at": now_utc()}
            )
            self._referrals[referral_id] = validated
        return validated

    def list_active_pending_referrals(self, limit: int = 200) -> list[Referral]:
        with self._lock:
            pending = [
                r
                for r in self._referrals.values()
                if not r.valid and self._generations.get(r.referred_id)
            ]
        pending.sort(key=lambda r: r.created_at)
        return pending[:limit]

    def count_valid_referrals(self, referrer_id: str) -> int:
        with self._lock:
            return sum(
                1 for r in self._referrals.values() if r.referrer_id == referrer_id and r.valid
            )

    def top_balances(self, limit: int = 10) -> list[Account]:
        with self._lock:
            accounts = [account.model_copy() for account in self._accounts.values()]
        accounts.sort(key=lambda a: a.balance, reverse=True)
        return accounts[:limit]

    def count_accounts(self) -> int:
        with self._lock:
            return len(self._accounts)

    def count_all_generations(self) -> int:
        with self._lock:
            return sum(len(records) for records in self._generations.values())
