"""FastAPI dependency injection helpers."""

from __future__ import annotations

import threading
import time
from functools import lru_cache
from typing import Any

from fastapi import Depends, Header

from app.config import settings
from app.services.account_service import AccountService
from app.services.admin_service import AdminService
from app.services.generation_service import GenerationService
from app.services.leaderboard_service import LeaderboardService
from app.services.ledger_service import BalanceProjection, LedgerService
from app.services.ledger_store import LedgerStore, SupabaseLedgerStore
from app.services.logo_generator import LogoGenerator, build_generator
from app.services.memory_store import InMemoryLedgerStore
from app.services.referral_service import ReferralService
from app.services.webhook_service import WebhookService
from app.utils.errors import UnauthorizedError
from app.utils.supabase_client import get_service_client, get_supabase_client

_token_cache: dict[str, tuple[float, Any]] = {}
_cache_lock = threading.Lock()


def _cache_get(cache: dict[Any, tuple[float, Any]], key: Any) -> Any | None:
    """Return a cache value when present and not expired."""
    now = time.monotonic()
    with _cache_lock:
        entry = cache.get(key)
        if not entry:
            return None
        expires_at, value = entry
        if expires_at <= now:
            cache.pop(key, None)
            return None
        return value


def _cache_set(
    cache: dict[Any, tuple[float, Any]],
    key: Any,
    value: Any,
    ttl_seconds: int,
    max_entries: int,
) -> None:
    """Store a bounded cache value with TTL."""
    if ttl_seconds <= 0:
        return

    with _cache_lock:
        bounded_max_entries = max(1, max_entries)
        if len(cache) >= bounded_max_entries:
            oldest_key = next(iter(cache))
            cache.pop(oldest_key, None)
        cache[key] = (time.monotonic() + ttl_seconds, value)


def get_authenticated_user(authorization: str = Header(None)) -> Any:
    """Extract and validate a Supabase JWT from the Authorization header.

    Raises:
        UnauthorizedError: 401 if the header is missing, malformed, or
            the token cannot be validated.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Missing authorization header")

    token = authorization.split(" ", 1)[1]
    cached_user = _cache_get(_token_cache, token)
    if cached_user is not None:
        return cached_user

    supabase = get_supabase_client()

    try:
        response = supabase.auth.get_user(token)
        if not response or not response.user:
            raise UnauthorizedError("Invalid token")
        _cache_set(
            _token_cache,
            token,
            response.user,
            settings.auth_token_cache_ttl_seconds,
            settings.auth_token_cache_max_entries,
        )
        return response.user
    except UnauthorizedError:
        raise
    except Exception as exc:
        raise UnauthorizedError("Invalid or expired token") from exc


def get_current_account_id(user: Any = Depends(get_authenticated_user)) -> str:
    """Extract a stable account id string from the Supabase user object."""
    return str(user.id)


def get_current_user_email(user: Any) -> str | None:
    """Return the authenticated user's normalized email, if the provider gave one."""
    raw_email = getattr(user, "email", None)
    if not isinstance(raw_email, str) or not raw_email.strip():
        return None
    return raw_email.strip().lower()


@lru_cache(maxsize=1)
def get_ledger_store() -> LedgerStore:
    """Return the process-wide ledger store selected by LEDGER_BACKEND."""
    backend = settings.ledger_backend.strip().lower()
    if backend == "supabase":
        return SupabaseLedgerStore(get_service_client())
    if backend == "memory":
        if settings.is_production:
            raise ValueError("The memory ledger backend cannot run in production")
        return InMemoryLedgerStore()
    raise ValueError(f"Unknown ledger backend: {settings.ledger_backend}")


@lru_cache(maxsize=1)
def get_balance_projection() -> BalanceProjection:
    """Return the process-wide balance projection."""
    return BalanceProjection(
        ttl_seconds=settings.balance_cache_ttl_seconds,
        max_entries=settings.data_cache_max_entries,
    )


@lru_cache(maxsize=1)
def get_logo_generator() -> LogoGenerator:
    """Return the configured logo generator."""
    return build_generator()


def get_ledger_service(
    store: LedgerStore = Depends(get_ledger_store),
    projection: BalanceProjection = Depends(get_balance_projection),
) -> LedgerService:
    return LedgerService(store, projection=projection)


def get_referral_service(
    store: LedgerStore = Depends(get_ledger_store),
    ledger: LedgerService = Depends(get_ledger_service),
) -> ReferralService:
    return ReferralService(store, ledger)


def get_account_service(
    store: LedgerStore = Depends(get_ledger_store),
    ledger: LedgerService = Depends(get_ledger_service),
    referrals: ReferralService = Depends(get_referral_service),
) -> AccountService:
    return AccountService(store, ledger, referrals)


def get_generation_service(
    store: LedgerStore = Depends(get_ledger_store),
    ledger: LedgerService = Depends(get_ledger_service),
    referrals: ReferralService = Depends(get_referral_service),
    generator: LogoGenerator = Depends(get_logo_generator),
) -> GenerationService:
    return GenerationService(store, ledger, generator, referrals=referrals)


def get_webhook_service(
    store: LedgerStore = Depends(get_ledger_store),
    ledger: LedgerService = Depends(get_ledger_service),
) -> WebhookService:
    return WebhookService(store, ledger)


def get_leaderboard_service(store: LedgerStore = Depends(get_ledger_store)) -> LeaderboardService:
    return LeaderboardService(store)


def get_admin_service(store: LedgerStore = Depends(get_ledger_store)) -> AdminService:
    return AdminService(store)
