"""Pytest fixtures for backend tests."""

from __future__ import annotations

import os
from collections.abc import Iterator
from types import SimpleNamespace

import pytest
from fastapi import Header
from fastapi.testclient import TestClient


def _set_default_env() -> None:
    os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
    os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
    os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-key")
    os.environ.setdefault("ENABLE_SCHEDULER", "false")
    os.environ.setdefault("LEDGER_BACKEND", "memory")


# Settings are read at import time, so the environment has to exist before
# any test module imports the app.
_set_default_env()

from app.services.account_service import AccountService  # noqa: E402
from app.services.generation_service import GenerationService  # noqa: E402
from app.services.ledger_service import BalanceProjection, LedgerService  # noqa: E402
from app.services.memory_store import InMemoryLedgerStore  # noqa: E402
from app.services.referral_service import ReferralService  # noqa: E402
from app.services.webhook_service import WebhookService  # noqa: E402
from app.utils.errors import ExternalServiceError, UnauthorizedError  # noqa: E402


class FakeLogoGenerator:
    """Generator double that records prompts and can be told to fail."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.error: Exception | None = None

    def generate(self, prompt: str) -> str:
        self.calls.append(prompt)
        if self.error is not None:
            raise self.error
        return f"https://img.example/{len(self.calls)}.svg"

    def fail_with(self, error: Exception | None = None) -> None:
        self.error = error or ExternalServiceError()


@pytest.fixture(scope="session")
def client() -> TestClient:
    """Create a FastAPI test client."""
    from app.main import app

    return TestClient(app)


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def ledger(store: InMemoryLedgerStore) -> LedgerService:
    return LedgerService(store, projection=BalanceProjection(ttl_seconds=30, max_entries=100))


@pytest.fixture
def referrals(store: InMemoryLedgerStore, ledger: LedgerService) -> ReferralService:
    return ReferralService(store, ledger, reward_amount=5)


@pytest.fixture
def accounts(
    store: InMemoryLedgerStore,
    ledger: LedgerService,
    referrals: ReferralService,
) -> AccountService:
    return AccountService(store, ledger, referrals, signup_bonus=10)


@pytest.fixture
def generator() -> FakeLogoGenerator:
    return FakeLogoGenerator()


@pytest.fixture
def generations(
    store: InMemoryLedgerStore,
    ledger: LedgerService,
    referrals: ReferralService,
    generator: FakeLogoGenerator,
) -> GenerationService:
    return GenerationService(store, ledger, generator, referrals=referrals, cost=1)


@pytest.fixture
def webhooks(store: InMemoryLedgerStore, ledger: LedgerService) -> WebhookService:
    return WebhookService(store, ledger)


@pytest.fixture
def api(store: InMemoryLedgerStore, generator: FakeLogoGenerator) -> Iterator[TestClient]:
    """Test client wired to a fresh in-memory store.

    Requests authenticate as ``Authorization: Bearer <account id>``.
    """
    from app.dependencies import (
        get_authenticated_user,
        get_balance_projection,
        get_ledger_store,
        get_logo_generator,
    )
    from app.main import app

    def fake_user(authorization: str = Header(None)) -> SimpleNamespace:
        if not authorization or not authorization.startswith("Bearer "):
            raise UnauthorizedError("Missing authorization header")
        user_id = authorization.split(" ", 1)[1]
        return SimpleNamespace(id=user_id, email=f"{user_id}@example.com")

    projection = BalanceProjection(ttl_seconds=30, max_entries=100)
    app.dependency_overrides[get_ledger_store] = lambda: store
    app.dependency_overrides[get_balance_projection] = lambda: projection
    app.dependency_overrides[get_logo_generator] = lambda: generator
    app.dependency_overrides[get_authenticated_user] = fake_user
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

