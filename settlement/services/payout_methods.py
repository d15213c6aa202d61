"""Payout method handlers.

Each method validates its own preference block and records a transfer
intent. No funds move here: every dispatch returns ``pending_manual`` and an
operator completes the transfer out of band.
"""

import logging
import secrets
import string
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from settlement.core.exceptions import MissingPayoutDetailsError, PayoutMethodDisabledError

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class Payee:
    """Recipient of a payout: a vendor or the platform admin."""

    payee_type: str
    payee_id: str
    display_name: str | None = None


@dataclass
class PayoutResult:
    """Recorded payout intent."""

    status: str
    method: str
    amount: Decimal
    currency: str
    transaction_id: str | None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "method": self.method,
            "amount": float(self.amount),
            "currency": self.currency,
            "transaction_id": self.transaction_id,
            "details": self.details,
        }


def generate_transaction_id(prefix: str) -> str:
    """Build ``{prefix}_{epoch_ms}_{8 random base36 chars}``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(8))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


class PayoutMethod:
    """Base payout method. Subclasses set the class attributes."""

    key: str = ""
    prefix: str = ""
    label: str = ""
    required_fields: tuple[str, ...] = ()

    def validate(self, block: dict[str, Any]) -> None:
        """Check the preference block has every required field.

        Raises:
            MissingPayoutDetailsError: If a field is missing or blank.
        """
        missing = [name for name in self.required_fields if not block.get(name)]
        if missing:
            raise MissingPayoutDetailsError(
                f"Missing required {self.label} details: {', '.join(missing)}",
                details={"method": self.key, "missing": missing},
            )

    async def dispatch(
        self,
        payee: Payee,
        amount: Decimal,
        currency: str,
        block: dict[str, Any],
        details: dict[str, Any] | None = None,
    ) -> PayoutResult:
        """Validate the destination and record a manual transfer intent."""
        self.validate(block)

        result = PayoutResult(
            status="pending_manual",
            method=self.key,
            amount=amount,
            currency=currency,
            transaction_id=generate_transaction_id(self.prefix),
            details={
                **{name: block.get(name) for name in self.required_fields},
                "payee_name": payee.display_name,
                **(details or {}),
            },
        )
        logger.info(
            "%s payout recorded for %s %s",
            self.label,
            payee.payee_type,
            payee.payee_id,
            extra={"transaction_id": result.transaction_id, "amount": str(amount), "currency": currency},
        )
        return result


class MobileMoneyMethod(PayoutMethod):
    key = "mobileMoney"
    prefix = "mm"
    label = "mobile money"
    required_fields = ("provider", "phone_number", "country")


class BankAccountMethod(PayoutMethod):
    key = "bankAccount"
    prefix = "bank"
    label = "bank account"
    required_fields = ("account_holder_name", "bank_name", "account_number", "country")


class PayPalMethod(PayoutMethod):
    key = "paypal"
    prefix = "pp"
    label = "PayPal"
    required_fields = ("email",)


class CryptoWalletMethod(PayoutMethod):
    key = "cryptoWallet"
    prefix = "crypto"
    label = "crypto wallet"
    required_fields = ("wallet_address", "network")


PAYOUT_METHODS: dict[str, PayoutMethod] = {
    method.key: method
    for method in (MobileMoneyMethod(), BankAccountMethod(), PayPalMethod(), CryptoWalletMethod())
}


def get_payout_method(key: str) -> PayoutMethod:
    """Look up a payout method handler by preference key.

    Raises:
        PayoutMethodDisabledError: If no handler exists for the key.
    """
    method = PAYOUT_METHODS.get(key)
    if method is None:
        raise PayoutMethodDisabledError(f"Unsupported payment method: {key}")
    return method
