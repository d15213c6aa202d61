"""Order model type definitions for database operations."""

import secrets
import string
import time
from datetime import datetime
from typing import Any, Literal, TypedDict
from uuid import UUID


# Order status values. 'paid' is only reached through the Paystack webhook.
OrderStatus = Literal[
    "pending",
    "paid",
    "processing",
    "shipped",
    "delivered",
    "completed",
    "cancelled",
    "refunded",
]

# Statuses an admin or vendor may set through the status reconciler
RECONCILABLE_STATUSES: tuple[str, ...] = (
    "pending",
    "processing",
    "shipped",
    "delivered",
    "completed",
    "cancelled",
    "refunded",
)

PaymentStatus = Literal["pending", "confirmed", "failed"]

PaymentMethod = Literal[
    "flutterwave",
    "paystack",
    "crypto",
    "nft",
    "mobile_money",
    "airtel_money",
    "cash_on_delivery",
    "card_payment",
]

VendorPayoutStatus = Literal["pending", "processing", "completed"]

# Column stamped when an order enters a status
STATUS_TIMESTAMP_FIELDS: dict[str, str] = {
    "processing": "processing_at",
    "shipped": "shipped_at",
    "delivered": "delivered_at",
    "completed": "completed_at",
    "cancelled": "cancelled_at",
    "refunded": "refunded_at",
}

_BASE36 = string.digits + string.ascii_lowercase


def generate_order_number() -> str:
    """Build an order number from the epoch milliseconds and a random suffix.

    Returns:
        str: e.g. ``ORD-1760870400000-K3J9XZ``.
    """
    timestamp = str(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"ORD-{timestamp}-{suffix}".upper()


class OrderItem(TypedDict, total=False):
    """Single line item, stored in the items JSONB array."""

    product_id: str
    vendor_id: str | None
    name: str
    price: float
    currency: str
    quantity: int
    is_nft: bool
    product: dict[str, Any] | None


class Order(TypedDict):
    """Orders table row representation."""

    id: UUID
    order_number: str
    user_id: UUID
    items: list[OrderItem]
    total_amount: float
    currency: str
    payment_method: PaymentMethod
    payment_details: dict | None
    tx_ref: str | None
    transaction_reference: str | None
    status: OrderStatus
    payment_status: PaymentStatus
    payment_confirmed_at: datetime | None
    tracking_number: str | None
    carrier: str | None
    estimated_delivery: datetime | None
    shipped_by: UUID | None
    delivered_by: UUID | None
    cancellation_reason: str | None
    refund_reason: str | None
    vendor_payout_status: VendorPayoutStatus
    metadata: dict
    created_at: datetime
    updated_at: datetime


class OrderStatusHistoryEntry(TypedDict):
    """order_status_history row. Insert-only."""

    id: int
    order_id: UUID
    status: OrderStatus
    notes: str
    updated_by: UUID | None
    created_at: datetime


class OrderTimelineEntry(TypedDict):
    """order_timeline row. Insert-only."""

    id: int
    order_id: UUID
    event: str
    details: dict
    created_at: datetime
