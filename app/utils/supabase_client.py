"""Supabase clients: anon key for auth checks, service role for the ledger."""

from functools import lru_cache

import httpx
from supabase.lib.client_options import SyncClientOptions

from app.config import settings
from supabase import Client, create_client

# Auth lookups are cached per token, so the anon client needs few sockets.
AUTH_POOL_SIZE = 10


def _client_options(pool_size: int) -> SyncClientOptions:
    timeout_seconds = max(1, settings.supabase_postgrest_timeout_seconds)
    keepalive = max(5, min(pool_size, settings.supabase_http_max_keepalive_connections))

    return SyncClientOptions(
        auto_refresh_token=False,
        persist_session=False,
        postgrest_client_timeout=timeout_seconds,
        storage_client_timeout=timeout_seconds,
        function_client_timeout=min(timeout_seconds, 30),
        httpx_client=httpx.Client(
            timeout=httpx.Timeout(timeout_seconds),
            limits=httpx.Limits(max_connections=pool_size, max_keepalive_connections=keepalive),
        ),
    )


def _connect(key: str, pool_size: int) -> Client:
    return create_client(settings.supabase_url, key, options=_client_options(pool_size))


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Return the anon-key client used to validate user JWTs."""
    return _connect(settings.supabase_anon_key, AUTH_POOL_SIZE)


@lru_cache(maxsize=1)
def get_service_client() -> Client:
    """Return the service-role client (bypasses RLS).

    Every ledger read and write goes through this client, including the
    ``apply_credit_delta`` function that the anon role cannot execute.
    """
    return _connect(
        settings.supabase_service_key,
        max(10, settings.supabase_http_max_connections),
    )
