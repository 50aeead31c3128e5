"""App wiring tests: health, timing header, scheduler registration."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from app.config import settings
from app.services.account_service import AccountService
from app.services.memory_store import InMemoryLedgerStore


def test_health_endpoint(client: TestClient) -> None:
    """Health endpoint should return status and version."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "version": settings.app_version,
        "ledger_backend": settings.ledger_backend,
    }
    assert "X-Process-Time-Ms" in response.headers


def test_register_jobs_is_idempotent() -> None:
    """Registering twice leaves a single reconciliation job."""
    from app.jobs.scheduler import register_jobs, scheduler

    register_jobs()
    register_jobs()
    try:
        jobs = [job.id for job in scheduler.get_jobs()]
        assert jobs == ["referral_reconciliation"]
    finally:
        scheduler.remove_all_jobs()


def test_reconciliation_job_validates_active_referrals(
    store: InMemoryLedgerStore,
    accounts: AccountService,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """The scheduled sweep pays referrers whose referrals became active."""
    from app.jobs import reconcile_referrals as job

    alice = accounts.create_account("alice", None).account
    accounts.create_account("bob", None, referral_code=alice.referral_code)
    store.create_generation("bob", "owl", "https://img.example/owl.svg")
    monkeypatch.setattr(job, "get_ledger_store", lambda: store)

    assert asyncio.run(job.referral_reconciliation()) == 1
    assert store.get_account("alice").balance == 15
