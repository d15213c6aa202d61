"""Commission Pydantic schemas for API request/response models."""

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

ReportPeriod = Literal["7d", "30d", "90d"]


class CommissionSummary(BaseModel):
    """Withdrawable commission and balance."""

    total_revenue: float
    total_commission: float
    commission_rate: float
    order_count: int
    currency: str
    withdrawn: float
    available: float


class CommissionWithdrawRequest(BaseModel):
    """Schema for POST /admin/commission/withdraw."""

    amount: Decimal = Field(description="Amount to withdraw in major units")
    currency: str = Field(default="RWF", min_length=3, max_length=3, description="Must equal the commission currency")
    withdrawal_details: dict[str, Any] = Field(default_factory=dict, description="Free-form context stored with the withdrawal")


class VendorCommissionRow(BaseModel):
    """Per-vendor line of a commission report."""

    vendor_id: str
    vendor_name: str | None = None
    vendor_email: str | None = None
    total_orders: int
    total_revenue: float
    total_commission: float


class CommissionTotals(BaseModel):
    total_orders: int
    total_revenue: float
    total_commission: float


class CommissionReport(BaseModel):
    """Commission report for a period."""

    vendors: list[VendorCommissionRow]
    totals: CommissionTotals
    commission_rate: float
    period: ReportPeriod
