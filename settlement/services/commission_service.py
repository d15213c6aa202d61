"""Commission split between the marketplace and vendors."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from settlement.core.money import round_money, to_decimal
from settlement.services.settings_service import MarketplaceSettingsService


@dataclass(frozen=True)
class PayoutSplit:
    """Result of splitting an amount into vendor and commission parts."""

    vendor_amount: Decimal
    commission_amount: Decimal
    commission_rate: Decimal
    currency: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "vendor_amount": float(self.vendor_amount),
            "commission_amount": float(self.commission_amount),
            "commission_rate": float(self.commission_rate),
            "currency": self.currency,
        }


def split_amount(amount: Any, rate: Any, currency: str) -> PayoutSplit:
    """Split an amount at a commission rate.

    The commission is rounded half-up to cents and the vendor gets the
    remainder of the rounded amount, so both parts always sum to it.

    Args:
        amount: Non-negative order amount in major units.
        rate: Commission rate in [0, 1].
        currency: Currency code, passed through.

    Returns:
        PayoutSplit: Vendor and commission amounts.

    Raises:
        ValueError: If amount is negative or rate is outside [0, 1].
    """
    amount_dec = to_decimal(amount)
    rate_dec = to_decimal(rate)

    if amount_dec < 0:
        raise ValueError("Order amount must be non-negative")
    if rate_dec < 0 or rate_dec > 1:
        raise ValueError("Commission rate must be between 0 and 1")

    total = round_money(amount_dec)
    commission = round_money(amount_dec * rate_dec)
    return PayoutSplit(
        vendor_amount=total - commission,
        commission_amount=commission,
        commission_rate=rate_dec,
        currency=currency,
    )


class CommissionCalculator:
    """Computes payout splits using the current marketplace commission rate."""

    def __init__(self, settings_service: MarketplaceSettingsService | None = None) -> None:
        self.settings_service = settings_service or MarketplaceSettingsService()

    async def calculate_payout(self, order_amount: Any, currency: str) -> PayoutSplit:
        """Split an order amount at the configured commission rate."""
        rate = await self.settings_service.get_commission_rate()
        return split_amount(order_amount, rate, currency)
