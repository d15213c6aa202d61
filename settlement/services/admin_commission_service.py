"""Marketplace commission totals, reports and admin withdrawals."""

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from settlement.core.config import get_settings
from settlement.core.exceptions import InsufficientCommissionError, InvalidRequestError
from settlement.core.money import money_to_json, round_money, to_decimal
from settlement.core.supabase import get_supabase_client
from settlement.services.order_status_service import ORDERS_TABLE, item_total, item_vendor_id
from settlement.services.payout_methods import Payee, PayoutResult
from settlement.services.payout_service import PAYOUT_HISTORY_TABLE, PayoutService
from settlement.services.settings_service import MarketplaceSettingsService
from settlement.services.vendor_payout_service import USERS_TABLE

logger = logging.getLogger(__name__)

REPORT_PERIODS: dict[str, int] = {"7d": 7, "30d": 30, "90d": 90}

# Withdrawals in these states no longer hold commission
RELEASED_WITHDRAWAL_STATUSES: frozenset[str] = frozenset({"failed", "cancelled"})

PAGE_SIZE = 1000


class AdminCommissionService:
    """Commission accounting for the platform admin.

    Only completed orders whose vendor payouts have been processed count
    toward withdrawable commission.
    """

    def __init__(
        self,
        settings_service: MarketplaceSettingsService | None = None,
        payout_service: PayoutService | None = None,
    ) -> None:
        """Initialize commission service with clients."""
        self.client = get_supabase_client()
        self.settings = get_settings()
        self.settings_service = settings_service or MarketplaceSettingsService()
        self.payout_service = payout_service or PayoutService()

    def _fetch_all(self, build_query: Any) -> list[dict[str, Any]]:
        """Page through a query built by build_query()."""
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            response = build_query().range(offset, offset + PAGE_SIZE - 1).execute()
            batch = response.data or []
            rows.extend(batch)
            if len(batch) < PAGE_SIZE:
                return rows
            offset += PAGE_SIZE

    async def calculate_total_commission(self) -> dict[str, Any]:
        """Commission earned on payout-processed completed orders.

        Returns:
            dict: total_revenue, total_commission, commission_rate,
                order_count, currency.
        """
        rate = await self.settings_service.get_commission_rate()
        orders = self._fetch_all(
            lambda: self.client.table(ORDERS_TABLE)
            .select("id, items")
            .eq("status", "completed")
            .eq("metadata->>vendorPayoutProcessed", "true")
            .order("created_at")
        )

        total_revenue = Decimal("0")
        total_commission = Decimal("0")
        for order in orders:
            for item in order.get("items") or []:
                line_total = item_total(item)
                total_revenue += line_total
                total_commission += line_total * rate

        return {
            "total_revenue": money_to_json(total_revenue),
            "total_commission": money_to_json(total_commission),
            "commission_rate": float(rate),
            "order_count": len(orders),
            "currency": self.settings.commission_currency,
        }

    async def get_withdrawn_amount(self) -> Decimal:
        """Sum of admin withdrawals still holding commission.

        A withdrawal may have several history rows; its latest row decides
        whether it still counts.
        """
        rows = self._fetch_all(
            lambda: self.client.table(PAYOUT_HISTORY_TABLE)
            .select("id, transaction_id, amount, status, processed_at")
            .eq("payee_type", "admin")
            .order("processed_at")
            .order("id")
        )
        latest: dict[str, dict[str, Any]] = {}
        for row in rows:
            if row.get("transaction_id"):
                latest[row["transaction_id"]] = row

        withdrawn = sum(
            (to_decimal(row["amount"]) for row in latest.values() if row["status"] not in RELEASED_WITHDRAWAL_STATUSES),
            Decimal("0"),
        )
        return round_money(withdrawn)

    async def get_commission_summary(self) -> dict[str, Any]:
        """Total commission, amount withdrawn and balance available."""
        total = await self.calculate_total_commission()
        withdrawn = await self.get_withdrawn_amount()
        available = max(round_money(total["total_commission"]) - withdrawn, Decimal("0"))
        return {
            **total,
            "withdrawn": money_to_json(withdrawn),
            "available": money_to_json(available),
        }

    async def withdraw_commission(
        self,
        admin_id: str,
        amount: Any,
        currency: str,
        withdrawal_details: dict[str, Any] | None = None,
        admin_name: str | None = None,
    ) -> PayoutResult:
        """Pay commission out to the admin's preferred payout method.

        Raises:
            InvalidRequestError: Wrong currency or non-positive amount.
            InsufficientCommissionError: Amount exceeds the available balance.
            PayoutMethodDisabledError: Admin's default method not enabled.
            MissingPayoutDetailsError: Admin's method lacks required fields.
        """
        expected_currency = self.settings.commission_currency
        if (currency or "").upper() != expected_currency:
            raise InvalidRequestError(f"Commission withdrawals must be processed in {expected_currency}")

        try:
            amount_dec = round_money(amount)
        except ValueError as e:
            raise InvalidRequestError("Valid amount is required") from e
        if amount_dec <= 0:
            raise InvalidRequestError("Valid amount is required")

        summary = await self.get_commission_summary()
        available = round_money(summary["available"])
        if amount_dec > available:
            raise InsufficientCommissionError(
                "Withdrawal exceeds available commission",
                details={"requested": float(amount_dec), "available": float(available)},
            )

        result = await self.payout_service.process_payout(
            Payee(payee_type="admin", payee_id=str(admin_id), display_name=admin_name),
            amount_dec,
            expected_currency,
            {**(withdrawal_details or {}), "type": "commission_withdrawal"},
        )
        logger.info(
            "Commission withdrawal of %s %s recorded for admin %s",
            amount_dec,
            expected_currency,
            admin_id,
            extra={"transaction_id": result.transaction_id},
        )
        return result

    async def get_withdrawal_history(
        self,
        admin_id: str,
        limit: int = 50,
        status: str | None = None,
    ) -> list[dict[str, Any]]:
        """An admin's withdrawal history, newest first."""
        return await self.payout_service.get_payout_history("admin", admin_id, limit=limit, status=status)

    async def get_commission_report(self, period: str = "30d") -> dict[str, Any]:
        """Per-vendor revenue and commission for completed orders in a period.

        Raises:
            InvalidRequestError: If period is not 7d, 30d or 90d.
        """
        days = REPORT_PERIODS.get(period)
        if days is None:
            raise InvalidRequestError(f"Invalid period: {period}", details={"allowed": list(REPORT_PERIODS)})

        rate = await self.settings_service.get_commission_rate()
        start = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        orders = self._fetch_all(
            lambda: self.client.table(ORDERS_TABLE)
            .select("id, items, created_at")
            .eq("status", "completed")
            .gte("created_at", start)
            .order("created_at")
        )

        revenue: dict[str, Decimal] = defaultdict(Decimal)
        vendor_orders: dict[str, set[str]] = defaultdict(set)
        for order in orders:
            for item in order.get("items") or []:
                vendor_id = item_vendor_id(item)
                if not vendor_id:
                    continue
                revenue[vendor_id] += item_total(item)
                vendor_orders[vendor_id].add(str(order["id"]))

        vendors_by_id: dict[str, dict[str, Any]] = {}
        if revenue:
            response = (
                self.client.table(USERS_TABLE)
                .select("id, username, email")
                .in_("id", list(revenue))
                .execute()
            )
            vendors_by_id = {str(v["id"]): v for v in response.data or []}

        vendors = []
        for vendor_id, vendor_revenue in revenue.items():
            vendor = vendors_by_id.get(vendor_id, {})
            vendors.append(
                {
                    "vendor_id": vendor_id,
                    "vendor_name": vendor.get("username"),
                    "vendor_email": vendor.get("email"),
                    "total_orders": len(vendor_orders[vendor_id]),
                    "total_revenue": money_to_json(vendor_revenue),
                    "total_commission": money_to_json(vendor_revenue * rate),
                }
            )
        vendors.sort(key=lambda v: v["total_commission"], reverse=True)

        total_revenue = sum(revenue.values(), Decimal("0"))
        return {
            "vendors": vendors,
            "totals": {
                "total_orders": len(set().union(*vendor_orders.values())),
                "total_revenue": money_to_json(total_revenue),
                "total_commission": money_to_json(total_revenue * rate),
            },
            "commission_rate": float(rate),
            "period": period,
        }
