"""Pytest configuration and fixtures."""

import os
from collections.abc import Generator
from contextlib import ExitStack
from typing import Any
from unittest.mock import MagicMock, patch
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPABASE_SIGNING_KEY_JWK", "test-signing-key-jwk")
os.environ.setdefault("FLW_SECRET_HASH", "test-flw-hash")
os.environ.setdefault("FLW_SECRET_KEY", "FLWSECK_TEST-key")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_paystack")
os.environ.setdefault("COMMISSION_CURRENCY", "RWF")
os.environ.setdefault("PAYOUT_SWEEP_ENABLED", "false")

# Every module that binds get_supabase_client at import time
SUPABASE_CLIENT_MODULES = (
    "settlement.core.supabase",
    "settlement.services.admin_commission_service",
    "settlement.services.notification_service",
    "settlement.services.order_status_service",
    "settlement.services.payment_preferences_service",
    "settlement.services.payment_webhook_service",
    "settlement.services.payout_service",
    "settlement.services.settings_service",
    "settlement.services.vendor_payout_service",
    "settlement.services.webhook_ledger",
)

ADMIN_ID = "550e8400-e29b-41d4-a716-446655440000"
VENDOR_ID = "660e8400-e29b-41d4-a716-446655440001"


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from settlement.core.config import get_settings

    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    get_settings.cache_clear()


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client shared by every service.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with ExitStack() as stack:
        for module in SUPABASE_CLIENT_MODULES:
            stack.enter_context(patch(f"{module}.get_supabase_client", return_value=mock_client))
        yield mock_client


@pytest.fixture
def client(mock_supabase_client: MagicMock) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Args:
        mock_supabase_client: Mocked Supabase client fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    from settlement.main import app

    with TestClient(app) as test_client:
        yield test_client


def _override_user(role: str, user_id: str) -> Any:
    from settlement.schemas.auth import UserContext

    def _user() -> UserContext:
        return UserContext(
            user_id=UUID(user_id),
            email=f"{role}@example.com",
            role=role,
            display_name=role.title(),
        )

    return _user


@pytest.fixture
def admin_client(mock_supabase_client: MagicMock) -> Generator[TestClient, None, None]:
    """Test client authenticated as an admin."""
    from settlement.api.deps import get_current_user
    from settlement.main import app

    app.dependency_overrides[get_current_user] = _override_user("admin", ADMIN_ID)
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def vendor_client(mock_supabase_client: MagicMock) -> Generator[TestClient, None, None]:
    """Test client authenticated as a vendor."""
    from settlement.api.deps import get_current_user
    from settlement.main import app

    app.dependency_overrides[get_current_user] = _override_user("vendor", VENDOR_ID)
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
