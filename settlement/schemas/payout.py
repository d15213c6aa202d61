"""Payout Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

OperatorPayoutStatus = Literal["processing", "completed", "failed", "cancelled"]


class PayoutHistoryItem(BaseModel):
    """One row of payout history."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: int | None = None
    payee_type: str
    payee_id: str
    order_id: str | None = None
    amount: float
    currency: str
    method: str
    status: str
    transaction_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    processed_at: datetime | None = None


class PayoutResultResponse(BaseModel):
    """Recorded payout intent returned after dispatch."""

    status: str = Field(description="pending_manual on success")
    method: str = Field(description="Payout method key")
    amount: float = Field(description="Amount in major units")
    currency: str = Field(description="Currency code")
    transaction_id: str | None = Field(default=None, description="Generated transaction id")
    details: dict[str, Any] = Field(default_factory=dict)


class PayoutStatusUpdate(BaseModel):
    """Schema for POST /admin/payouts/{transaction_id}/status."""

    status: OperatorPayoutStatus = Field(description="New payout status")
    note: str | None = Field(default=None, max_length=1000, description="Operator note")


class SweepRequest(BaseModel):
    """Schema for POST /admin/payouts/process."""

    limit: int = Field(default=100, ge=1, le=1000, description="Maximum orders to process")


class SweepResponse(BaseModel):
    """Summary of a payout sweep run."""

    processed: int
    successful: int
    failed: int
    errors: list[dict[str, Any]] = Field(default_factory=list)
    payouts: list[dict[str, Any]] = Field(default_factory=list)
