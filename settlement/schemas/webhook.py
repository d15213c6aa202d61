"""Webhook acknowledgement and ledger Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from settlement.schemas.common import PaginationMeta


class WebhookEventResponse(BaseModel):
    """A webhook ledger entry."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: str
    source: str
    event_id: str
    tx_ref: str | None = None
    status: str
    attempts: int = 1
    last_error: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WebhookEventList(BaseModel):
    """Page of ledger entries."""

    items: list[WebhookEventResponse]
    pagination: PaginationMeta
