"""Referral lifecycle tests."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from app.schemas.referral import ReferralStatus
from app.services.account_service import AccountService
from app.services.generation_service import GenerationService
from app.services.ledger_service import LedgerService
from app.services.memory_store import InMemoryLedgerStore
from app.services.referral_service import ReferralService
from app.utils.errors import AccountNotFoundError


@pytest.fixture
def referred_pair(accounts: AccountService) -> tuple[str, str]:
    """Referrer ``alice`` and the account she brought in, ``bob``."""
    alice = accounts.create_account("alice", "alice@example.com").account
    signup = accounts.create_account("bob", "bob@example.com", referral_code=alice.referral_code)
    assert signup.referral is not None
    return alice.id, signup.account.id


def test_referral_stays_pending_without_activity(
    referred_pair: tuple[str, str],
    referrals: ReferralService,
    store: InMemoryLedgerStore,
    ledger: LedgerService,
) -> None:
    """Signing up alone earns the referrer nothing."""
    alice, bob = referred_pair

    assert referrals.validate_referral_activity(bob) is None
    referral = store.get_pending_referral(bob)
    assert referral is not None
    assert referral.status == ReferralStatus.PENDING
    assert ledger.get_balance(alice) == 10
    assert store.get_account(bob).referred_by == alice


def test_first_generation_validates_and_pays_once(
    referred_pair: tuple[str, str],
    referrals: ReferralService,
    generations: GenerationService,
    store: InMemoryLedgerStore,
    ledger: LedgerService,
) -> None:
    """The reward lands after the referred user's first logo, and only once."""
    alice, bob = referred_pair

    generations.generate(bob, "a paper crane")
    generations.generate(bob, "another crane")

    assert ledger.get_balance(alice) == 15
    assert referrals.validate_referral_activity(bob) is None
    assert ledger.get_balance(alice) == 15
    assert referrals.stats(alice) == {"valid_referrals": 1, "credits_earned": 5}

    entries, _ = ledger.history(alice)
    assert entries[0].reason == f"referral reward for {bob}"
    assert store.get_pending_referral(bob) is None


def test_concurrent_validation_pays_once(
    referred_pair: tuple[str, str],
    referrals: ReferralService,
    store: InMemoryLedgerStore,
    ledger: LedgerService,
) -> None:
    """Racing validators: one flips the referral, the rest are no-ops."""
    alice, bob = referred_pair
    store.create_generation(bob, "a paper crane", "https://img.example/1.svg")
    barrier = threading.Barrier(4)

    def validate(_: int) -> bool:
        barrier.wait()
        return referrals.validate_referral_activity(bob) is not None

    with ThreadPoolExecutor(max_workers=4) as pool:
        flips = sum(pool.map(validate, range(4)))

    assert flips == 1
    assert ledger.get_balance(alice) == 15


def test_reconcile_pending_validates_active_referrals(
    accounts: AccountService,
    referrals: ReferralService,
    store: InMemoryLedgerStore,
    ledger: LedgerService,
) -> None:
    """The sweep catches activity that happened outside the generation path."""
    alice = accounts.create_account("alice", "alice@example.com").account
    accounts.create_account("bob", None, referral_code=alice.referral_code)
    accounts.create_account("carol", None, referral_code=alice.referral_code)
    store.create_generation("bob", "owl", "https://img.example/owl.svg")

    assert referrals.reconcile_pending() == 1
    assert referrals.reconcile_pending() == 0
    assert ledger.get_balance("alice") == 15
    assert store.get_pending_referral("carol") is not None


def test_failed_reward_is_logged_and_not_retried(
    referred_pair: tuple[str, str],
    referrals: ReferralService,
    store: InMemoryLedgerStore,
    ledger: LedgerService,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """A vanished referrer leaves a validated referral and an error log."""
    alice, bob = referred_pair
    store.create_generation(bob, "owl", "https://img.example/owl.svg")

    def referrer_gone(*_args, **_kwargs):
        raise AccountNotFoundError(alice)

    monkeypatch.setattr(ledger, "credit", referrer_gone)
    with caplog.at_level(logging.ERROR, logger="app.services.referral_service"):
        referral = referrals.validate_referral_activity(bob)

    assert referral is not None
    assert referral.status == ReferralStatus.VALIDATED
    assert "reconciliation gap" in caplog.text
    monkeypatch.undo()

    assert referrals.validate_referral_activity(bob) is None
    assert referrals.reconcile_pending() == 0
    assert ledger.get_balance(alice) == 10


def test_unknown_code_still_signs_up(accounts: AccountService, store: InMemoryLedgerStore) -> None:
    """A stale link should not block registration."""
    result = accounts.create_account("dave", None, referral_code="NOPE2345")

    assert result.referral is None
    assert result.account.balance == 10
    assert store.get_pending_referral("dave") is None


def test_self_referral_is_ignored(referrals: ReferralService, accounts: AccountService) -> None:
    """Nobody can refer themselves."""
    alice = accounts.create_account("alice", "alice@example.com").account

    assert referrals.register_referral("alice", alice.referral_code) is None


def test_referral_codes_are_case_insensitive(accounts: AccountService) -> None:
    """Links typed in lowercase still resolve."""
    alice = accounts.create_account("alice", "alice@example.com").account
    signup = accounts.create_account("bob", None, referral_code=f" {alice.referral_code.lower()} ")

    assert signup.referral is not None
    assert signup.referral.referrer_id == "alice"


def test_second_referrer_is_ignored(
    accounts: AccountService, referrals: ReferralService
) -> None:
    """The first referral sticks."""
    alice = accounts.create_account("alice", None).account
    carol = accounts.create_account("carol", None).account
    accounts.create_account("bob", None, referral_code=alice.referral_code)

    assert referrals.register_referral("bob", carol.referral_code) is None


def test_unexpected_reward_failure_is_logged_as_gap(
    referred_pair: tuple[str, str],
    referrals: ReferralService,
    store: InMemoryLedgerStore,
    ledger: LedgerService,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Transport errors during payout are treated like any other gap."""
    alice, bob = referred_pair
    store.create_generation(bob, "owl", "https://img.example/owl.svg")

    def database_down(*_args, **_kwargs):
        raise ConnectionError("connection reset")

    monkeypatch.setattr(ledger, "credit", database_down)
    with caplog.at_level(logging.ERROR, logger="app.services.referral_service"):
        referral = referrals.validate_referral_activity(bob)

    assert referral is not None
    assert referral.status == ReferralStatus.VALIDATED
    assert "reconciliation gap" in caplog.text
    assert "ConnectionError" in caplog.text


def test_idle_referrals_do_not_starve_the_sweep(
    accounts: AccountService,
    referrals: ReferralService,
    store: InMemoryLedgerStore,
    ledger: LedgerService,
) -> None:
    """Older never-active referrals must not fill every batch."""
    alice = accounts.create_account("alice", None).account
    for referred in ("idle-1", "idle-2", "active"):
        accounts.create_account(referred, None, referral_code=alice.referral_code)
    store.create_generation("active", "owl", "https://img.example/owl.svg")

    assert referrals.reconcile_pending(limit=2) == 1
    assert ledger.get_balance("alice") == 15
    assert store.get_pending_referral("active") is None
    assert store.get_pending_referral("idle-1") is not None


def test_sweep_continues_after_a_failing_referral(
    accounts: AccountService,
    referrals: ReferralService,
    store: InMemoryLedgerStore,
    ledger: LedgerService,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """One broken referral does not abort the rest of the batch."""
    alice = accounts.create_account("alice", None).account
    for referred in ("bob", "carol"):
        accounts.create_account(referred, None, referral_code=alice.referral_code)
        store.create_generation(referred, "owl", "https://img.example/owl.svg")

    original = store.mark_referral_valid
    bob_referral = store.get_pending_referral("bob")

    def flaky(referral_id: str):
        if referral_id == bob_referral.id:
            raise ConnectionError("connection reset")
        return original(referral_id)

    monkeypatch.setattr(store, "mark_referral_valid", flaky)

    assert referrals.reconcile_pending() == 1
    assert ledger.get_balance("alice") == 15
