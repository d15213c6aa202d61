"""Unit tests for configuration module."""

import os
from decimal import Decimal
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from settlement.core.config import Settings, get_settings

REQUIRED_ENV = {
    "SUPABASE_URL": "https://test.supabase.co",
    "SUPABASE_SECRET_KEY": "test-secret",
    "SUPABASE_SIGNING_KEY_JWK": "{}",
}


class TestSettings:
    """Tests for Settings class."""

    def test_settings_loads_from_environment(self) -> None:
        """Test that Settings loads values from environment variables."""
        env_vars = {
            **REQUIRED_ENV,
            "APP_ENV": "testing",
            "PORT": "9000",
            "FLW_SECRET_HASH": "flw-hash",
            "WEBHOOK_MAX_APPLY_ATTEMPTS": "1",
            "DEFAULT_COMMISSION_RATE": "0.15",
            "PAYOUT_SWEEP_INTERVAL_SECONDS": "600",
        }

        with patch.dict(os.environ, env_vars, clear=False):
            settings = Settings(_env_file=None)

            assert settings.app_env == "testing"
            assert settings.port == 9000
            assert settings.flw_secret_hash == "flw-hash"
            assert settings.webhook_max_apply_attempts == 1
            assert settings.default_commission_rate == Decimal("0.15")
            assert settings.payout_sweep_interval_seconds == 600

    def test_settings_cors_origins_list(self) -> None:
        """Test that CORS origins are correctly parsed into a list."""
        env_vars = {**REQUIRED_ENV, "CORS_ORIGINS": "http://localhost:3000, http://example.com , "}

        with patch.dict(os.environ, env_vars, clear=False):
            settings = Settings(_env_file=None)

            assert settings.cors_origins_list == ["http://localhost:3000", "http://example.com"]

    def test_commission_currency_is_upper_cased(self) -> None:
        with patch.dict(os.environ, {**REQUIRED_ENV, "COMMISSION_CURRENCY": " usd "}, clear=False):
            assert Settings(_env_file=None).commission_currency == "USD"

    def test_paystack_signing_secret_falls_back_to_secret_key(self) -> None:
        env_vars = {**REQUIRED_ENV, "PAYSTACK_SECRET_KEY": "sk_live", "PAYSTACK_WEBHOOK_SECRET": ""}

        with patch.dict(os.environ, env_vars, clear=False):
            assert Settings(_env_file=None).paystack_signing_secret == "sk_live"

        env_vars["PAYSTACK_WEBHOOK_SECRET"] = "whsec"
        with patch.dict(os.environ, env_vars, clear=False):
            assert Settings(_env_file=None).paystack_signing_secret == "whsec"

    def test_commission_rate_outside_unit_interval_rejected(self) -> None:
        with patch.dict(os.environ, {**REQUIRED_ENV, "DEFAULT_COMMISSION_RATE": "1.5"}, clear=False):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_max_apply_attempts_must_be_positive(self) -> None:
        with patch.dict(os.environ, {**REQUIRED_ENV, "WEBHOOK_MAX_APPLY_ATTEMPTS": "0"}, clear=False):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_settings_default_values(self) -> None:
        """Test that default values are applied correctly."""
        with patch.dict(os.environ, REQUIRED_ENV, clear=True):
            settings = Settings(_env_file=None)

            assert settings.app_name == "marketplace-settlement"
            assert settings.is_production is False
            assert settings.admin_role == "admin"
            assert settings.webhook_max_apply_attempts == 3
            assert settings.webhook_stale_after_seconds == 300
            assert settings.default_commission_rate == Decimal("0.10")
            assert settings.payout_sweep_enabled is True

    def test_settings_validation_error_missing_required(self) -> None:
        """Test that validation errors are raised for missing required fields."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValidationError) as exc_info:
                Settings(_env_file=None)

            error_fields = [e["loc"][0] for e in exc_info.value.errors()]
            assert "supabase_url" in error_fields
            assert "supabase_signing_key_jwk" in error_fields


class TestGetSettings:
    """Tests for get_settings function."""

    def test_get_settings_returns_cached_singleton(self) -> None:
        get_settings.cache_clear()

        settings1 = get_settings()
        settings2 = get_settings()

        assert isinstance(settings1, Settings)
        assert settings1 is settings2

        get_settings.cache_clear()

    def test_get_settings_cache_can_be_cleared(self) -> None:
        get_settings.cache_clear()

        settings1 = get_settings()
        get_settings.cache_clear()
        settings2 = get_settings()

        assert settings1 is not settings2

        get_settings.cache_clear()
