"""Credit ledger tests."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from app.schemas.ledger import TransactionKind
from app.services.ledger_service import BalanceProjection, LedgerService
from app.services.memory_store import InMemoryLedgerStore
from app.utils.errors import AccountNotFoundError, InsufficientCreditsError, InvalidInputError


def _open_account(store: InMemoryLedgerStore, account_id: str = "acct-1") -> str:
    store.create_account(account_id, f"{account_id}@example.com", f"CODE{account_id[-1]}XYZ")
    return account_id


def test_balance_equals_sum_of_transactions(store: InMemoryLedgerStore, ledger: LedgerService) -> None:
    """Every balance change must be explained by a ledger row."""
    account_id = _open_account(store)
    ledger.credit(account_id, 10, TransactionKind.EARNED, "signup bonus")
    ledger.debit(account_id, 1, "generated logo")
    ledger.credit(account_id, 25, TransactionKind.PURCHASED, "ramp top-up p-1")
    ledger.debit(account_id, 3, "generated logo")
    ledger.refund(account_id, 1, "generation failed")

    entries, total = ledger.history(account_id)
    assert total == 5
    assert sum(entry.amount for entry in entries) == ledger.get_balance(account_id) == 32
    assert entries[0].kind == TransactionKind.REFUND
    assert entries[0].balance_after == 32


def test_debit_below_zero_is_rejected_without_writing(
    store: InMemoryLedgerStore, ledger: LedgerService
) -> None:
    """An overdraft leaves both balance and history untouched."""
    account_id = _open_account(store)
    ledger.credit(account_id, 2, TransactionKind.EARNED, "signup bonus")

    with pytest.raises(InsufficientCreditsError) as exc_info:
        ledger.debit(account_id, 3, "generated logo")

    assert exc_info.value.required == 3
    assert exc_info.value.available == 2
    assert exc_info.value.status_code == 402
    assert ledger.get_balance(account_id) == 2
    assert ledger.history(account_id)[1] == 1


@pytest.mark.parametrize("amount", [0, -1, 1.5, "3", True])
def test_non_positive_or_non_integer_amounts_are_invalid(
    store: InMemoryLedgerStore, ledger: LedgerService, amount: object
) -> None:
    """Amounts must be positive whole numbers for both directions."""
    account_id = _open_account(store)
    with pytest.raises(InvalidInputError):
        ledger.debit(account_id, amount, "generated logo")  # type: ignore[arg-type]
    with pytest.raises(InvalidInputError):
        ledger.credit(account_id, amount, TransactionKind.EARNED, "bonus")  # type: ignore[arg-type]


def test_credit_rejects_spent_kind(store: InMemoryLedgerStore, ledger: LedgerService) -> None:
    """Spending only goes through debit."""
    account_id = _open_account(store)
    with pytest.raises(InvalidInputError):
        ledger.credit(account_id, 1, TransactionKind.SPENT, "nope")


def test_credit_unknown_account(ledger: LedgerService) -> None:
    """Crediting a missing account is a 404, not a silent no-op."""
    with pytest.raises(AccountNotFoundError):
        ledger.credit("ghost", 5, TransactionKind.PURCHASED, "ramp top-up p-2")


def test_concurrent_debits_never_overdraw(store: InMemoryLedgerStore, ledger: LedgerService) -> None:
    """Two racing debits against a one-credit balance: exactly one wins."""
    account_id = _open_account(store)
    ledger.credit(account_id, 1, TransactionKind.EARNED, "signup bonus")
    barrier = threading.Barrier(2)

    def spend() -> str:
        barrier.wait()
        try:
            ledger.debit(account_id, 1, "generated logo")
        except InsufficientCreditsError:
            return "rejected"
        return "ok"

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = sorted(pool.map(lambda _: spend(), range(2)))

    assert outcomes == ["ok", "rejected"]
    assert ledger.get_balance(account_id) == 0


def test_many_concurrent_debits_match_history(
    store: InMemoryLedgerStore, ledger: LedgerService
) -> None:
    """Under contention the balance still equals the sum of committed rows."""
    account_id = _open_account(store)
    ledger.credit(account_id, 20, TransactionKind.PURCHASED, "coinremitter top-up inv-1")

    def spend(_: int) -> bool:
        try:
            ledger.debit(account_id, 1, "generated logo")
        except InsufficientCreditsError:
            return False
        return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        successes = sum(pool.map(spend, range(50)))

    entries, _ = ledger.history(account_id, limit=200)
    assert successes == 20
    assert ledger.get_balance(account_id) == 0
    assert sum(entry.amount for entry in entries) == 0


def test_projection_tracks_store_after_mutations(store: InMemoryLedgerStore) -> None:
    """The projection holds only values the store handed back."""
    projection = BalanceProjection(ttl_seconds=60, max_entries=10)
    ledger = LedgerService(store, projection=projection)
    account_id = _open_account(store)

    assert projection.get(account_id) is None
    ledger.credit(account_id, 4, TransactionKind.EARNED, "signup bonus")
    assert projection.get(account_id) == 4

    with pytest.raises(InsufficientCreditsError):
        ledger.debit(account_id, 5, "generated logo")
    assert projection.get(account_id) == 4
    assert ledger.projected_balance(account_id) == 4


def test_projection_disabled_reads_through(store: InMemoryLedgerStore) -> None:
    """A zero TTL turns the projection off without changing results."""
    projection = BalanceProjection(ttl_seconds=0, max_entries=10)
    ledger = LedgerService(store, projection=projection)
    account_id = _open_account(store)
    ledger.credit(account_id, 3, TransactionKind.EARNED, "signup bonus")

    assert projection.get(account_id) is None
    assert ledger.projected_balance(account_id) == 3


def test_projection_evicts_oldest_entry() -> None:
    """The projection stays bounded."""
    projection = BalanceProjection(ttl_seconds=60, max_entries=2)
    projection.reconcile("a", 1)
    projection.reconcile("b", 2)
    projection.reconcile("c", 3)

    assert projection.get("a") is None
    assert projection.get("b") == 2
    assert projection.get("c") == 3
