"""Ledger store contract and its Supabase-backed implementation.

The store is the single source of truth for accounts, transactions,
referrals, generation records and webhook idempotency keys. Every
check-and-set the ledger relies on (balance floor, webhook claim, referral
flip) happens inside one store call so no caller ever holds a stale value
between a read and a write.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any

from postgrest import APIError

from app.schemas.generation import GenerationRecord
from app.schemas.ledger import Account, Transaction, TransactionKind
from app.schemas.referral import Referral
from app.services.common import SupabaseService, is_unique_violation
from app.utils.errors import (
    AccountNotFoundError,
    ConflictError,
    InsufficientCreditsError,
    InvalidInputError,
)
from app.utils.time import now_utc, parse_timestamp
from supabase import Client

logger = logging.getLogger(__name__)


class LedgerStore(ABC):
    """Durable storage for the credit ledger."""

    @abstractmethod
    def get_account(self, account_id: str) -> Account:
        """Return an account or raise AccountNotFoundError."""

    @abstractmethod
    def get_account_by_referral_code(self, code: str) -> Account:
        """Return the account owning ``code`` or raise AccountNotFoundError."""

    @abstractmethod
    def create_account(
        self,
        account_id: str,
        email: str | None,
        referral_code: str,
        role: str = "user",
    ) -> Account:
        """Create a zero-balance account; ConflictError on duplicate id or code."""

    @abstractmethod
    def apply_delta(
        self,
        account_id: str,
        amount: int,
        kind: TransactionKind,
        reason: str,
    ) -> tuple[int, Transaction]:
        """Atomically move a balance and append the matching transaction.

        Rejects with InsufficientCreditsError when ``balance + amount < 0``.
        Concurrent callers on the same account are serialized.
        """

    @abstractmethod
    def list_transactions(
        self, account_id: str, limit: int = 50, offset: int = 0
    ) -> tuple[list[Transaction], int]:
        """Return transactions newest first, plus the total count."""

    @abstractmethod
    def record_webhook_event(
        self,
        provider: str,
        external_id: str,
        amount: int,
        account_ref: str | None = None,
    ) -> bool:
        """Claim ``(provider, external_id)``; False when already processed."""

    @abstractmethod
    def flag_webhook_event(self, provider: str, external_id: str, error: str) -> None:
        """Attach a reconciliation note to a claimed event."""

    @abstractmethod
    def create_generation(self, account_id: str, prompt: str, image_ref: str) -> GenerationRecord:
        """Persist a generated logo."""

    @abstractmethod
    def count_generations(self, account_id: str) -> int:
        """Return how many logos an account has produced."""

    @abstractmethod
    def list_generations(
        self, account_id: str, limit: int = 12, offset: int = 0
    ) -> list[GenerationRecord]:
        """Return generation records newest first."""

    @abstractmethod
    def create_referral(self, referrer_id: str, referred_id: str) -> Referral | None:
        """Create a pending referral; None when ``referred_id`` already has one."""

    @abstractmethod
    def get_pending_referral(self, referred_id: str) -> Referral | None:
        """Return the not-yet-valid referral for ``referred_id``, if any."""

    @abstractmethod
    def mark_referral_valid(self, referral_id: str) -> Referral | None:
        """Flip a pending referral to valid; None if it was no longer pending."""

    @abstractmethod
    def list_active_pending_referrals(self, limit: int = 200) -> list[Referral]:
        """Return pending referrals whose referred user has a logo, oldest first."""

    @abstractmethod
    def count_valid_referrals(self, referrer_id: str) -> int:
        """Return how many validated referrals a referrer has."""

    @abstractmethod
    def top_balances(self, limit: int = 10) -> list[Account]:
        """Return accounts ordered by balance, highest first."""

    @abstractmethod
    def count_accounts(self) -> int:
        """Return how many accounts exist."""

    @abstractmethod
    def count_all_generations(self) -> int:
        """Return how many logos have been generated across all accounts."""


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def _account_from_row(row: dict[str, Any]) -> Account:
    return Account(
        id=str(row["id"]),
        email=row.get("email"),
        balance=int(row.get("credits") or 0),
        referral_code=str(row["referral_code"]),
        referred_by=str(row["referred_by"]) if row.get("referred_by") else None,
        role=str(row.get("role") or "user"),
        created_at=parse_timestamp(row.get("created_at")) or now_utc(),
    )


def _transaction_from_row(row: dict[str, Any]) -> Transaction:
    return Transaction(
        id=str(row["id"]),
        account_id=str(row["user_id"]),
        amount=int(row["amount"]),
        kind=TransactionKind(row["type"]),
        reason=str(row.get("reason") or ""),
        balance_after=int(row["balance_after"]),
        created_at=parse_timestamp(row.get("created_at")) or now_utc(),
    )


def _referral_from_row(row: dict[str, Any]) -> Referral:
    return Referral(
        id=str(row["id"]),
        referrer_id=str(row["referrer_id"]),
        referred_id=str(row["referred_id"]),
        valid=bool(row.get("valid")),
        activity_confirmed=bool(row.get("activity_confirmed")),
        created_at=parse_timestamp(row.get("created_at")) or now_utc(),
        validated_at=parse_timestamp(row.get("validated_at")),
    )


def _generation_from_row(row: dict[str, Any]) -> GenerationRecord:
    return GenerationRecord(
        id=str(row["id"]),
        account_id=str(row["user_id"]),
        prompt=str(row["prompt"]),
        image_ref=str(row["image_url"]),
        created_at=parse_timestamp(row.get("created_at")) or now_utc(),
    )


class SupabaseLedgerStore(LedgerStore):
    """Ledger store backed by the hosted Postgres.

    Balance mutation runs in the ``apply_credit_delta`` database function,
    which locks the account row for the duration of the update and insert.
    See ``supabase/migrations`` for the schema.
    """

    def __init__(self, client: Client) -> None:
        self.db = SupabaseService(client)

    def get_account(self, account_id: str) -> Account:
        if not _is_uuid(account_id):
            raise AccountNotFoundError(account_id)
        rows = self.db.select_many("users", filters={"id": account_id}, limit=1)
        if not rows:
            raise AccountNotFoundError(account_id)
        return _account_from_row(rows[0])

    def get_account_by_referral_code(self, code: str) -> Account:
        rows = self.db.select_many("users", filters={"referral_code": code}, limit=1)
        if not rows:
            raise AccountNotFoundError(code)
        return _account_from_row(rows[0])

    def create_account(
        self,
        account_id: str,
        email: str | None,
        referral_code: str,
        role: str = "user",
    ) -> Account:
        payload = {
            "id": account_id,
            "email": email,
            "credits": 0,
            "referral_code": referral_code,
            "role": role,
        }
        try:
            response = self.db.client.table("users").insert(payload).execute()
        except APIError as exc:
            if is_unique_violation(exc):
                raise ConflictError("Account or referral code already exists") from exc
            raise
        if not response.data:
            raise InvalidInputError("Failed to create account")
        return _account_from_row(response.data[0])

    def apply_delta(
        self,
        account_id: str,
        amount: int,
        kind: TransactionKind,
        reason: str,
    ) -> tuple[int, Transaction]:
        rows = self.db.execute(
            self.db.client.rpc(
                "apply_credit_delta",
                {
                    "p_account_id": account_id,
                    "p_amount": amount,
                    "p_kind": kind.value,
                    "p_reason": reason,
                },
            ),
            default=[],
        )
        if not rows:
            raise InvalidInputError("Ledger update failed")

        payload = rows[0]
        if not payload.get("success"):
            self._raise_for_reason(
                str(payload.get("reason") or ""),
                account_id=account_id,
                amount=amount,
                balance=int(payload.get("balance") or 0),
            )

        transaction = Transaction(
            id=str(payload["transaction_id"]),
            account_id=account_id,
            amount=amount,
            kind=kind,
            reason=reason,
            balance_after=int(payload["balance"]),
            created_at=parse_timestamp(payload.get("created_at")) or now_utc(),
        )
        return transaction.balance_after, transaction

    @staticmethod
    def _raise_for_reason(reason: str, account_id: str, amount: int, balance: int) -> None:
        if reason == "account_not_found":
            raise AccountNotFoundError(account_id)
        if reason == "insufficient_funds":
            raise InsufficientCreditsError(required=-amount, available=balance)
        raise InvalidInputError("Ledger update failed")

    def list_transactions(
        self, account_id: str, limit: int = 50, offset: int = 0
    ) -> tuple[list[Transaction], int]:
        rows = self.db.select_many(
            "credit_transactions",
            filters={"user_id": account_id},
            order_by="created_at",
            descending=True,
            limit=limit,
            offset=offset,
        )
        total = self.db.count("credit_transactions", {"user_id": account_id})
        return [_transaction_from_row(row) for row in rows], total

    def record_webhook_event(
        self,
        provider: str,
        external_id: str,
        amount: int,
        account_ref: str | None = None,
    ) -> bool:
        payload = {
            "provider": provider,
            "external_id": external_id,
            "account_ref": account_ref,
            "amount": amount,
            "processed": True,
        }
        try:
            self.db.client.table("webhook_events").insert(payload).execute()
        except APIError as exc:
            if is_unique_violation(exc):
                return False
            raise
        return True

    def flag_webhook_event(self, provider: str, external_id: str, error: str) -> None:
        self.db.update(
            "webhook_events",
            {"provider": provider, "external_id": external_id},
            {"error": error},
        )

    def create_generation(self, account_id: str, prompt: str, image_ref: str) -> GenerationRecord:
        row = self.db.insert_one(
            "logos",
            {"user_id": account_id, "prompt": prompt, "image_url": image_ref},
        )
        return _generation_from_row(row)

    def count_generations(self, account_id: str) -> int:
        return self.db.count("logos", {"user_id": account_id})

    def list_generations(
        self, account_id: str, limit: int = 12, offset: int = 0
    ) -> list[GenerationRecord]:
        rows = self.db.select_many(
            "logos",
            filters={"user_id": account_id},
            order_by="created_at",
            descending=True,
            limit=limit,
            offset=offset,
        )
        return [_generation_from_row(row) for row in rows]

    def create_referral(self, referrer_id: str, referred_id: str) -> Referral | None:
        try:
            response = (
                self.db.client.table("referrals")
                .insert(
                    {
                        "referrer_id": referrer_id,
                        "referred_id": referred_id,
                        "valid": False,
                        "activity_confirmed": False,
                    }
                )
                .execute()
            )
        except APIError as exc:
            if is_unique_violation(exc):
                return None
            raise
        if not response.data:
            return None

        self.db.update("users", {"id": referred_id}, {"referred_by": referrer_id})
        return _referral_from_row(response.data[0])

    def get_pending_referral(self, referred_id: str) -> Referral | None:
        rows = self.db.select_many(
            "referrals",
            filters={"referred_id": referred_id, "valid": False},
            limit=1,
        )
        return _referral_from_row(rows[0]) if rows else None

    def mark_referral_valid(self, referral_id: str) -> Referral | None:
        rows = self.db.update(
            "referrals",
            {"id": referral_id, "valid": False},
            {
                "valid": True,
                "activity_confirmed": True,
                "validated_at": now_utc().isoformat(),
            },
        )
        return _referral_from_row(rows[0]) if rows else None

    def list_active_pending_referrals(self, limit: int = 200) -> list[Referral]:
        rows = self.db.execute(
            self.db.client.rpc("active_pending_referrals", {"p_limit": limit}),
            default=[],
        )
        return [_referral_from_row(row) for row in rows]

    def count_valid_referrals(self, referrer_id: str) -> int:
        return self.db.count("referrals", {"referrer_id": referrer_id, "valid": True})

    def top_balances(self, limit: int = 10) -> list[Account]:
        rows = self.db.select_many("users", order_by="credits", descending=True, limit=limit)
        return [_account_from_row(row) for row in rows]

    def count_accounts(self) -> int:
        return self.db.count("users")

    def count_all_generations(self) -> int:
        return self.db.count("logos")
