"""Marketplace settings Pydantic schemas."""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MarketplaceSettingsUpdate(BaseModel):
    """Schema for PUT /admin/settings. Unset fields are left unchanged."""

    model_config = ConfigDict(extra="ignore")

    commission_rate: Decimal | None = Field(default=None, ge=0, le=1, description="Commission as a fraction")
    currencies: list[str] | None = Field(default=None, description="Accepted currency codes")
    minimum_order_amount: Decimal | None = Field(default=None, ge=0)
    maximum_order_amount: Decimal | None = Field(default=None, ge=0)
    enable_paystack: bool | None = None
    enable_crypto: bool | None = None
    enable_nft: bool | None = None
    enable_notifications: bool | None = None

    @model_validator(mode="after")
    def check_order_bounds(self) -> "MarketplaceSettingsUpdate":
        """Minimum order amount may not exceed the maximum."""
        if (
            self.minimum_order_amount is not None
            and self.maximum_order_amount is not None
            and self.minimum_order_amount > self.maximum_order_amount
        ):
            raise ValueError("minimum_order_amount must not exceed maximum_order_amount")
        return self

    def to_updates(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class MarketplaceSettingsResponse(BaseModel):
    """Stored settings record."""

    model_config = ConfigDict(from_attributes=True, extra="allow")

    type: str
    commission_rate: float
    version: int | None = None
    last_updated_by: str | None = None
