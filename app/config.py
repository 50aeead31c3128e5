"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration.

    Values are read from environment variables (or a `.env` file).
    """

    # Supabase
    supabase_url: str
    supabase_anon_key: str
    supabase_service_key: str
    supabase_http_max_connections: int = 100
    supabase_http_max_keepalive_connections: int = 50
    supabase_postgrest_timeout_seconds: int = 30

    # App
    app_name: str = "Loguvo Credits API"
    app_version: str = "1.0.0"
    environment: str = "development"
    log_level: str = "INFO"
    allowed_origins: str = "http://localhost:3000"
    enable_scheduler: bool = True

    # Storage: "supabase" in deployed environments, "memory" for local runs
    ledger_backend: str = "supabase"

    # Credit economics
    signup_bonus_credits: int = 10
    referral_reward_credits: int = 5
    generation_cost_credits: int = 1

    # Logo generation collaborator
    generator_backend: str = "dicebear"
    generator_url: str = ""
    generator_api_key: str = ""
    generation_timeout_seconds: float = 60.0
    generation_max_prompt_length: int = 500

    # Payment webhooks. An empty secret skips signature checks outside
    # production and refuses deliveries in production.
    ramp_webhook_secret: str = ""
    coinremitter_webhook_secret: str = ""
    # Fits the int4 credit columns with headroom for existing balances.
    webhook_max_credits: int = 1_000_000

    # Scheduling
    timezone: str = "UTC"
    referral_reconcile_interval_minutes: int = 15
    referral_reconcile_batch_size: int = 200

    # Performance tuning
    auth_token_cache_ttl_seconds: int = 15
    auth_token_cache_max_entries: int = 1024
    balance_cache_ttl_seconds: int = 30
    data_cache_max_entries: int = 5000
    slow_request_log_threshold_ms: int = 0
    slow_query_log_threshold_ms: int = 0

    @property
    def is_production(self) -> bool:
        """Return True when running in production."""
        return self.environment == "production"

    @property
    def origins_list(self) -> list[str]:
        """Parse comma-separated ALLOWED_ORIGINS into a list."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    def webhook_secret(self, provider: str) -> str:
        """Return the shared signing secret configured for ``provider``."""
        return {
            "ramp": self.ramp_webhook_secret,
            "coinremitter": self.coinremitter_webhook_secret,
        }.get(provider, "")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()  # type: ignore[call-arg]
