"""Application configuration management using Pydantic Settings."""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="marketplace-settlement", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(..., description="Supabase signing key JWK (JSON string) for JWT token verification")

    # Admin access
    admin_role: str = Field(default="admin", description="Role claim value that grants admin access")

    # Flutterwave
    flw_secret_hash: str = Field(default="", description="Shared secret compared against the verif-hash webhook header")
    flw_secret_key: str = Field(default="", description="Flutterwave secret API key used for transaction verification")
    flw_api_base_url: str = Field(default="https://api.flutterwave.com/v3", description="Flutterwave API base URL")

    # Paystack
    paystack_secret_key: str = Field(default="", description="Paystack secret API key")
    paystack_webhook_secret: str = Field(default="", description="Paystack webhook signing secret (defaults to the secret key)")
    paystack_api_base_url: str = Field(default="https://api.paystack.co", description="Paystack API base URL")

    # Provider verification
    provider_verify_timeout_seconds: float = Field(default=10.0, description="Timeout for provider verification calls")
    provider_verify_max_retries: int = Field(default=2, description="Retries for transport-level verification failures")

    # Webhook ledger
    webhook_max_apply_attempts: int = Field(
        default=3,
        ge=1,
        description="Maximum applications of one webhook event. 1 makes the first ledger insert terminal.",
    )
    webhook_stale_after_seconds: int = Field(
        default=300,
        description="Age after which a 'recorded' ledger entry is considered abandoned and may be re-claimed",
    )

    # Commission
    default_commission_rate: Decimal = Field(default=Decimal("0.10"), ge=0, le=1, description="Commission rate used when settings are unset")
    settings_cache_ttl_seconds: int = Field(default=60, description="TTL for the cached marketplace settings")
    commission_currency: str = Field(default="RWF", description="Currency in which admin commission is reported and withdrawn")

    # Payout sweep
    payout_sweep_enabled: bool = Field(default=True, description="Run the periodic vendor payout sweep")
    payout_sweep_interval_seconds: int = Field(default=3600, description="Seconds between payout sweeps")
    payout_sweep_batch_size: int = Field(default=100, description="Orders processed per sweep")

    @model_validator(mode="after")
    def normalize_currency(self) -> "Settings":
        """Store the commission currency upper-cased so comparisons are stable."""
        self.commission_currency = self.commission_currency.strip().upper()
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def paystack_signing_secret(self) -> str:
        """Secret used to verify x-paystack-signature headers."""
        return self.paystack_webhook_secret or self.paystack_secret_key


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
