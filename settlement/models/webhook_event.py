"""Webhook ledger model type definitions."""

from datetime import datetime
from typing import Literal, TypedDict
from uuid import UUID

WebhookSource = Literal["flutterwave", "paystack"]

# recorded: inserted, processing in flight
# applied:  processing finished (terminal)
# rejected: provider disagreed with the webhook body (terminal)
# failed:   processing raised; may be re-claimed by a retry
WebhookEventStatus = Literal["recorded", "applied", "failed", "rejected"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"applied", "rejected"})


class WebhookEvent(TypedDict):
    """webhook_events table row. UNIQUE (source, event_id)."""

    id: UUID
    source: WebhookSource
    event_id: str
    tx_ref: str | None
    status: WebhookEventStatus
    attempts: int
    last_error: str | None
    meta: dict
    created_at: datetime
    updated_at: datetime
