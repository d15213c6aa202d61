"""Unit tests for JWT decoding and authentication utilities."""

import time
from collections.abc import Generator
from typing import Any
from unittest.mock import MagicMock, patch

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from jwt.algorithms import ECAlgorithm

from settlement.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt, get_signing_key

USER_ID = "550e8400-e29b-41d4-a716-446655440000"

SIGNING_KEY = ec.generate_private_key(ec.SECP256R1())
OTHER_KEY = ec.generate_private_key(ec.SECP256R1())


def create_test_token(
    sub: str = USER_ID,
    email: str | None = "test@example.com",
    role: str | None = "authenticated",
    exp_offset: int = 3600,
    key: Any = SIGNING_KEY,
    **claims: Any,
) -> str:
    """Create an ES256 test token.

    Args:
        sub: Subject (user ID).
        email: User email.
        role: Top-level role claim.
        exp_offset: Seconds from now for expiration (negative for expired).
        key: Private key for signing.

    Returns:
        str: Encoded JWT token.
    """
    now = int(time.time())
    payload = {
        "sub": sub,
        "email": email,
        "role": role,
        "exp": now + exp_offset,
        "iat": now,
        "aud": "authenticated",
        "iss": "https://test.supabase.co/auth/v1",
        **claims,
    }
    return jwt.encode(payload, key, algorithm="ES256")


@pytest.fixture
def signing_settings() -> Generator[MagicMock, None, None]:
    """Point the signing key setting at the test public key."""
    get_signing_key.cache_clear()
    with patch("settlement.api.middleware.auth.get_settings") as mock_settings:
        mock_settings.return_value.supabase_signing_key_jwk = ECAlgorithm.to_jwk(SIGNING_KEY.public_key())
        yield mock_settings
    get_signing_key.cache_clear()


class TestDecodeJWT:
    """Tests for decode_jwt function."""

    def test_decode_jwt_with_valid_token(self, signing_settings: MagicMock) -> None:
        token = create_test_token(app_metadata={"role": "admin"}, user_metadata={"username": "ops"})

        payload = decode_jwt(token)

        assert payload.sub == USER_ID
        assert payload.email == "test@example.com"
        assert payload.aud == "authenticated"
        assert payload.app_metadata == {"role": "admin"}
        assert payload.user_metadata == {"username": "ops"}

    def test_decode_jwt_with_expired_token(self, signing_settings: MagicMock) -> None:
        token = create_test_token(exp_offset=-3600)

        with pytest.raises(AuthError) as exc_info:
            decode_jwt(token)

        assert exc_info.value.code == AuthErrorCode.TOKEN_EXPIRED

    def test_decode_jwt_with_invalid_signature(self, signing_settings: MagicMock) -> None:
        token = create_test_token(key=OTHER_KEY)

        with pytest.raises(AuthError) as exc_info:
            decode_jwt(token)

        assert exc_info.value.code == AuthErrorCode.INVALID_SIGNATURE

    def test_decode_jwt_with_malformed_token(self, signing_settings: MagicMock) -> None:
        with pytest.raises(AuthError) as exc_info:
            decode_jwt("not.a.jwt")

        assert exc_info.value.code == AuthErrorCode.INVALID_TOKEN

    def test_decode_jwt_missing_signing_key(self) -> None:
        get_signing_key.cache_clear()
        with patch("settlement.api.middleware.auth.get_settings") as mock_settings:
            mock_settings.return_value.supabase_signing_key_jwk = ""
            with pytest.raises(AuthError, match="not configured"):
                decode_jwt(create_test_token())
        get_signing_key.cache_clear()


class TestTokenPayload:
    """Tests for role resolution on TokenPayload."""

    def test_app_metadata_role_wins_over_authenticated(self, signing_settings: MagicMock) -> None:
        payload = decode_jwt(create_test_token(app_metadata={"role": "admin"}))

        user = payload.to_user_context("admin")

        assert user.role == "admin"
        assert str(user.user_id) == USER_ID

    def test_top_level_role_used_without_metadata(self, signing_settings: MagicMock) -> None:
        payload = decode_jwt(create_test_token(role="vendor", user_metadata={"display_name": "Kigali Crafts"}))

        user = payload.to_user_context("admin")

        assert user.role == "vendor"
        assert user.display_name == "Kigali Crafts"
