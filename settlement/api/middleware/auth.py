"""JWT authentication utilities."""

import json
from enum import Enum
from functools import lru_cache
from typing import Any

import jwt
from jwt import PyJWK

from settlement.core.config import get_settings
from settlement.schemas.auth import TokenPayload


class AuthErrorCode(str, Enum):
    """Authentication error codes."""

    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class AuthError(Exception):
    """Authentication error with specific error code.

    Raised when JWT validation fails for any reason.
    """

    def __init__(self, message: str, code: AuthErrorCode) -> None:
        self.message = message
        self.code = code
        super().__init__(message)


@lru_cache
def get_signing_key() -> Any:
    """Load the public key from the signing key JWK setting.

    Returns:
        Public key for JWT verification.

    Raises:
        AuthError: If the JWK is missing or malformed.
    """
    jwk_json = get_settings().supabase_signing_key_jwk
    if not jwk_json:
        raise AuthError("Signing key not configured", AuthErrorCode.INVALID_TOKEN)

    try:
        jwk_data = json.loads(jwk_json)
    except json.JSONDecodeError as e:
        raise AuthError(f"Invalid signing key JWK format: {e}", AuthErrorCode.INVALID_TOKEN) from e

    return PyJWK.from_dict(jwk_data).key


def decode_jwt(token: str) -> TokenPayload:
    """Decode and validate a Supabase-issued ES256 JWT.

    Args:
        token: The JWT token string to decode.

    Returns:
        TokenPayload: Validated token payload.

    Raises:
        AuthError: If token is invalid, expired, or has wrong signature.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            get_signing_key(),
            algorithms=["ES256"],
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_iat": True,
                "verify_aud": False,
                "require": ["exp", "iat", "sub"],
            },
        )
        return TokenPayload(
            sub=payload["sub"],
            email=payload.get("email"),
            role=payload.get("role"),
            exp=payload["exp"],
            iat=payload["iat"],
            aud=payload.get("aud") if isinstance(payload.get("aud"), str) else None,
            iss=payload.get("iss"),
            app_metadata=payload.get("app_metadata") or {},
            user_metadata=payload.get("user_metadata") or {},
        )

    except AuthError:
        raise

    except jwt.ExpiredSignatureError as e:
        raise AuthError("Token has expired", AuthErrorCode.TOKEN_EXPIRED) from e

    except jwt.InvalidSignatureError as e:
        raise AuthError("Invalid token signature", AuthErrorCode.INVALID_SIGNATURE) from e

    except jwt.DecodeError as e:
        raise AuthError(f"Invalid token format: {e}", AuthErrorCode.INVALID_TOKEN) from e

    except jwt.MissingRequiredClaimError as e:
        raise AuthError(f"Token missing required claim: {e}", AuthErrorCode.INVALID_TOKEN) from e

    except Exception as e:
        raise AuthError(f"Token validation failed: {e}", AuthErrorCode.INVALID_TOKEN) from e
