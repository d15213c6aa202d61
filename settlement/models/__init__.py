"""Database model type definitions."""

from settlement.models.order import Order, OrderItem, OrderStatus, generate_order_number
from settlement.models.payout import PaymentPreferences, PayoutHistoryEntry
from settlement.models.webhook_event import WebhookEvent

__all__ = [
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentPreferences",
    "PayoutHistoryEntry",
    "WebhookEvent",
    "generate_order_number",
]
