"""Domain exceptions for settlement, webhook and payout processing.

Every exception carries the HTTP status the API layer should answer with,
so services can raise them without knowing about FastAPI.
"""

from typing import Any

from fastapi import status


class SettlementError(Exception):
    """Base class for domain errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "settlement_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class AuthenticityError(SettlementError):
    """Webhook signature missing, unconfigured or mismatched."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "authenticity_error"


class MalformedEventError(SettlementError):
    """Webhook body is not JSON or lacks the required identifiers."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "malformed_event"


class DuplicateEventError(SettlementError):
    """Event was already processed. Acknowledged as a success."""

    status_code = status.HTTP_200_OK
    error_type = "duplicate_event"


class VerificationMismatchError(SettlementError):
    """Provider API disagrees with what the webhook body claims."""

    status_code = status.HTTP_200_OK
    error_type = "verification_mismatch"


class ProviderVerificationError(SettlementError):
    """Provider verification call failed or timed out. Retryable."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "provider_verification_error"


class OrderNotFoundError(SettlementError):
    """Order does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    error_type = "order_not_found"


class InvalidStatusError(SettlementError):
    """Requested order or payout status is not an allowed value."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "invalid_status"


class PayoutMethodDisabledError(SettlementError):
    """Payee's default payout method is missing or not enabled."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "payout_method_disabled"


class MissingPayoutDetailsError(SettlementError):
    """Enabled payout method lacks a required field."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "missing_payout_details"


class InsufficientCommissionError(SettlementError):
    """Withdrawal exceeds the commission currently available."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "insufficient_commission"


class PayoutNotFoundError(SettlementError):
    """No payout history exists for a transaction id."""

    status_code = status.HTTP_404_NOT_FOUND
    error_type = "payout_not_found"


class SweepInProgressError(SettlementError):
    """A payout sweep is already running in this process."""

    status_code = status.HTTP_409_CONFLICT
    error_type = "sweep_in_progress"


class InfrastructureError(SettlementError):
    """Storage or network fault. Callers should retry later."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "infrastructure_error"


class InvalidRequestError(SettlementError):
    """Request values fail a business rule (amount, currency, period)."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "invalid_request"
