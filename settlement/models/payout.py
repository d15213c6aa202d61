"""Payout and payment preference model type definitions."""

from datetime import datetime
from typing import Literal, TypedDict
from uuid import UUID

PayeeType = Literal["vendor", "admin"]

PayoutMethodKey = Literal["mobileMoney", "bankAccount", "paypal", "cryptoWallet"]

PAYOUT_METHOD_KEYS: tuple[str, ...] = ("mobileMoney", "bankAccount", "paypal", "cryptoWallet")

# pending_manual: intent recorded, an operator must execute the transfer
PayoutStatus = Literal["pending", "pending_manual", "processing", "completed", "failed", "cancelled"]

# Statuses an operator may record against an existing payout
OPERATOR_PAYOUT_STATUSES: tuple[str, ...] = ("processing", "completed", "failed", "cancelled")

# Storage column for each method block
METHOD_COLUMNS: dict[str, str] = {
    "mobileMoney": "mobile_money",
    "bankAccount": "bank_account",
    "paypal": "paypal",
    "cryptoWallet": "crypto_wallet",
}

DEFAULT_METHOD_BY_PAYEE: dict[str, str] = {
    "vendor": "mobileMoney",
    "admin": "bankAccount",
}


class PaymentPreferences(TypedDict, total=False):
    """payment_preferences table row. UNIQUE (payee_type, payee_id)."""

    id: UUID
    payee_type: PayeeType
    payee_id: str
    mobile_money: dict
    bank_account: dict
    paypal: dict
    crypto_wallet: dict
    default_payment_method: PayoutMethodKey
    withdrawal_preferences: dict
    payout_schedule: str
    auto_payout_enabled: bool
    payout_notifications: bool
    tax_information: dict
    is_verified: bool
    created_at: datetime
    updated_at: datetime


class PayoutHistoryEntry(TypedDict):
    """payout_history table row. Insert-only."""

    id: int
    payee_type: PayeeType
    payee_id: str
    order_id: str | None
    amount: float
    currency: str
    method: PayoutMethodKey
    status: PayoutStatus
    transaction_id: str | None
    details: dict
    processed_at: datetime
