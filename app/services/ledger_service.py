"""Credit ledger: the only sanctioned way to move a balance."""

from __future__ import annotations

import logging
import threading
import time

from app.config import settings
from app.schemas.ledger import Transaction, TransactionKind
from app.services.ledger_store import LedgerStore
from app.utils.errors import InsufficientCreditsError, InvalidInputError

logger = logging.getLogger(__name__)

CREDIT_KINDS = frozenset({TransactionKind.EARNED, TransactionKind.PURCHASED, TransactionKind.REFUND})


class BalanceProjection:
    """Short-lived read-through view of balances.

    Values only ever come from the store: either a fresh read or the balance
    returned by a committed ``apply_delta``. Nothing written here is treated
    as ledger state.
    """

    def __init__(self, ttl_seconds: int, max_entries: int) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max(1, max_entries)
        self._entries: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()

    def get(self, account_id: str) -> int | None:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(account_id)
            if not entry:
                return None
            expires_at, balance = entry
            if expires_at <= now:
                self._entries.pop(account_id, None)
                return None
            return balance

    def reconcile(self, account_id: str, balance: int) -> None:
        """Overwrite the projected balance with the store's value."""
        if self.ttl_seconds <= 0:
            return

        with self._lock:
            if account_id not in self._entries and len(self._entries) >= self.max_entries:
                oldest_key = next(iter(self._entries))
                self._entries.pop(oldest_key, None)
            self._entries[account_id] = (time.monotonic() + self.ttl_seconds, balance)


def _require_positive(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidInputError("Amount must be a positive whole number of credits")
    return amount


class LedgerService:
    """Debit, credit and refund credits through the store's atomic apply."""

    def __init__(self, store: LedgerStore, projection: BalanceProjection | None = None) -> None:
        self.store = store
        self.projection = projection or BalanceProjection(
            ttl_seconds=settings.balance_cache_ttl_seconds,
            max_entries=settings.data_cache_max_entries,
        )

    def debit(self, account_id: str, amount: int, reason: str) -> Transaction:
        """Spend ``amount`` credits.

        Raises:
            InsufficientCreditsError: the balance would go negative. Nothing
                is written.
            AccountNotFoundError: no such account.
        """
        amount = _require_positive(amount)
        return self._apply(account_id, -amount, TransactionKind.SPENT, reason)

    def credit(
        self,
        account_id: str,
        amount: int,
        kind: TransactionKind,
        reason: str,
    ) -> Transaction:
        """Add ``amount`` credits tagged with ``kind``."""
        amount = _require_positive(amount)
        if kind not in CREDIT_KINDS:
            raise InvalidInputError(f"Cannot credit with kind '{kind.value}'")
        return self._apply(account_id, amount, kind, reason)

    def refund(self, account_id: str, amount: int, reason: str) -> Transaction:
        """Give back credits taken by an earlier debit."""
        return self.credit(account_id, amount, TransactionKind.REFUND, reason)

    def get_balance(self, account_id: str) -> int:
        """Return the authoritative balance and refresh the projection."""
        balance = self.store.get_account(account_id).balance
        self.projection.reconcile(account_id, balance)
        return balance

    def projected_balance(self, account_id: str) -> int:
        """Return a recently confirmed balance, reading through on a miss."""
        cached = self.projection.get(account_id)
        if cached is not None:
            return cached
        return self.get_balance(account_id)

    def history(
        self, account_id: str, limit: int = 50, offset: int = 0
    ) -> tuple[list[Transaction], int]:
        """Return a page of transactions (newest first) and the total count."""
        return self.store.list_transactions(account_id, limit=limit, offset=offset)

    def _apply(
        self,
        account_id: str,
        amount: int,
        kind: TransactionKind,
        reason: str,
    ) -> Transaction:
        try:
            balance, transaction = self.store.apply_delta(account_id, amount, kind, reason)
        except InsufficientCreditsError as exc:
            self.projection.reconcile(account_id, exc.available)
            logger.info(
                "ledger debit rejected account=%s required=%s available=%s",
                account_id,
                exc.required,
                exc.available,
            )
            raise
        self.projection.reconcile(account_id, balance)
        logger.info(
            "ledger %s account=%s amount=%+d balance=%s reason=%s",
            kind.value,
            account_id,
            amount,
            balance,
            reason,
        )
        return transaction
