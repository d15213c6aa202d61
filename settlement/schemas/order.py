"""Order status and timeline Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class OrderStatusUpdate(BaseModel):
    """Schema for PATCH /admin/orders/{order_id}/status.

    Status is validated by the service so the error names the bad value.
    """

    status: str = Field(description="New order status")
    notes: str | None = Field(default=None, max_length=1000)
    tracking_number: str | None = Field(default=None, max_length=100)
    carrier: str | None = Field(default=None, max_length=100)
    estimated_delivery: datetime | None = None
    reason: str | None = Field(default=None, max_length=1000, description="Cancellation or refund reason")

    def update_data(self) -> dict[str, Any]:
        return self.model_dump(exclude={"status"}, exclude_none=True)


class OrderResponse(BaseModel):
    """Order after a status change."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: str
    order_number: str | None = None
    status: str
    payment_status: str | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    cancellation_reason: str | None = None
    refund_reason: str | None = None
    updated_at: datetime | None = None


class TimelineEvent(BaseModel):
    """One order timeline entry."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: int | None = None
    order_id: str
    event: str
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
