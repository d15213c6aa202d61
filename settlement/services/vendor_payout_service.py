"""Vendor payout sweep over completed orders."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from settlement.core.exceptions import (
    InfrastructureError,
    MissingPayoutDetailsError,
    PayoutMethodDisabledError,
)
from settlement.core.money import money_to_json
from settlement.core.supabase import get_supabase_client
from settlement.services.commission_service import CommissionCalculator
from settlement.services.order_status_service import (
    ORDERS_TABLE,
    OrderStatusService,
    item_total,
    item_vendor_id,
)
from settlement.services.payout_methods import Payee
from settlement.services.payout_service import PayoutService

logger = logging.getLogger(__name__)

USERS_TABLE = "users"


@dataclass
class SweepResult:
    """Summary of one sweep run."""

    processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    payouts: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "errors": self.errors,
            "payouts": self.payouts,
        }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class VendorPayoutService:
    """Pays vendors their share of completed orders.

    An order is claimed by moving vendor_payout_status from pending to
    processing with a conditional update, so two sweeps (in this process or
    another) never pay the same order twice. A storage fault part way
    through releases the claim back to pending, keeping the payouts already
    recorded so the retry skips those items. An order with any unpaid item
    also goes back to pending, and is only marked vendorPayoutProcessed once
    every item has been paid.
    """

    def __init__(
        self,
        calculator: CommissionCalculator | None = None,
        payout_service: PayoutService | None = None,
        order_service: OrderStatusService | None = None,
    ) -> None:
        """Initialize sweep service with clients."""
        self.client = get_supabase_client()
        self.calculator = calculator or CommissionCalculator()
        self.payout_service = payout_service or PayoutService()
        self.order_service = order_service or OrderStatusService(notifier=self.payout_service.notifier)

    async def process_completed_order_payouts(self, limit: int = 100) -> SweepResult:
        """Run payouts for completed orders that have not been paid out.

        Args:
            limit: Maximum orders to take in this run.

        Returns:
            SweepResult: Counts, per-item errors and recorded payouts.
        """
        response = (
            self.client.table(ORDERS_TABLE)
            .select("*")
            .eq("status", "completed")
            .eq("vendor_payout_status", "pending")
            .order("created_at")
            .limit(limit)
            .execute()
        )
        orders = response.data or []
        logger.info("Found %d orders to process for vendor payouts", len(orders))

        result = SweepResult()
        for order in orders:
            if not await self._claim(order["id"]):
                logger.info("Order %s already claimed by another sweep", order["id"])
                continue
            await self._process_order(order, result)

        logger.info(
            "Vendor payout sweep finished: processed=%d successful=%d failed=%d",
            result.processed,
            result.successful,
            result.failed,
        )
        return result

    async def _claim(self, order_id: str) -> bool:
        claimed = (
            self.client.table(ORDERS_TABLE)
            .update({"vendor_payout_status": "processing", "updated_at": _now_iso()})
            .eq("id", order_id)
            .eq("vendor_payout_status", "pending")
            .execute()
        )
        return bool(claimed.data)

    async def _get_vendor(self, vendor_id: str) -> dict[str, Any] | None:
        try:
            response = (
                self.client.table(USERS_TABLE)
                .select("id, username, display_name")
                .eq("id", vendor_id)
                .maybe_single()
                .execute()
            )
        except Exception as e:
            raise InfrastructureError(f"Failed to load vendor {vendor_id}") from e
        return response.data if response and response.data else None

    async def _process_order(self, order: dict[str, Any], result: SweepResult) -> None:
        order_id = str(order["id"])
        currency = order.get("currency") or "USD"
        metadata = dict(order.get("metadata") or {})
        vendor_payouts: list[dict[str, Any]] = list(metadata.get("vendorPayouts") or [])
        payout_errors: list[dict[str, Any]] = list(metadata.get("payoutErrors") or [])
        already_paid = {p.get("item_index") for p in vendor_payouts}
        item_failed = False

        try:
            for index, item in enumerate(order.get("items") or []):
                if index in already_paid:
                    continue

                vendor_id = item_vendor_id(item)
                if not vendor_id:
                    logger.warning("No vendor id for item %d of order %s", index, order_id)
                    payout_errors.append(
                        {"item_index": index, "error": "No vendor ID found", "timestamp": _now_iso()}
                    )
                    item_failed = True
                    continue

                vendor = await self._get_vendor(vendor_id)
                if not vendor:
                    logger.warning("Vendor %s not found for order %s", vendor_id, order_id)
                    payout_errors.append(
                        {
                            "item_index": index,
                            "vendor_id": vendor_id,
                            "error": "Vendor not found",
                            "timestamp": _now_iso(),
                        }
                    )
                    item_failed = True
                    continue

                line_total = item_total(item)
                split = await self.calculator.calculate_payout(line_total, currency)
                payee = Payee(
                    payee_type="vendor",
                    payee_id=vendor_id,
                    display_name=vendor.get("display_name") or vendor.get("username"),
                )

                try:
                    payout = await self.payout_service.process_payout(
                        payee,
                        split.vendor_amount,
                        currency,
                        {
                            "order_id": order_id,
                            "order_number": order.get("order_number"),
                            "item_index": index,
                            "product_id": item.get("product_id"),
                            "product_name": item.get("name"),
                            "quantity": item.get("quantity"),
                            "order_total": money_to_json(line_total),
                            "commission_rate": float(split.commission_rate),
                            "commission_amount": money_to_json(split.commission_amount),
                        },
                    )
                except (PayoutMethodDisabledError, MissingPayoutDetailsError) as e:
                    item_failed = True
                    result.failed += 1
                    result.errors.append({"order_id": order_id, "vendor_id": vendor_id, "error": e.message})
                    payout_errors.append(
                        {
                            "item_index": index,
                            "vendor_id": vendor_id,
                            "error": e.message,
                            "timestamp": _now_iso(),
                        }
                    )
                    await self.order_service.add_timeline_event(
                        order_id,
                        "vendor_payout",
                        {"vendor_id": vendor_id, "status": "failed", "error": e.message},
                    )
                    continue

                result.successful += 1
                result.payouts.append(payout.to_dict())
                vendor_payouts.append(
                    {
                        "item_index": index,
                        "vendor_id": vendor_id,
                        "amount": money_to_json(split.vendor_amount),
                        "commission_amount": money_to_json(split.commission_amount),
                        "currency": currency,
                        "status": payout.status,
                        "transaction_id": payout.transaction_id,
                        "processed_at": _now_iso(),
                    }
                )
                await self.order_service.add_timeline_event(
                    order_id,
                    "vendor_payout",
                    {
                        "vendor_id": vendor_id,
                        "amount": money_to_json(split.vendor_amount),
                        "currency": currency,
                        "status": payout.status,
                        "transaction_id": payout.transaction_id,
                    },
                )

            updated_metadata = {
                **metadata,
                "vendorPayouts": vendor_payouts,
                "payoutErrors": payout_errors,
            }
            if item_failed:
                # Unpaid items keep the order out of withdrawable commission until a later sweep pays them
                updated_metadata.pop("vendorPayoutProcessed", None)
                next_status = "pending"
            else:
                updated_metadata["vendorPayoutProcessed"] = True
                updated_metadata["vendorPayoutProcessedAt"] = _now_iso()
                next_status = "completed"
            (
                self.client.table(ORDERS_TABLE)
                .update(
                    {
                        "metadata": updated_metadata,
                        "vendor_payout_status": next_status,
                        "updated_at": _now_iso(),
                    }
                )
                .eq("id", order_id)
                .eq("vendor_payout_status", "processing")
                .execute()
            )
            result.processed += 1
            if item_failed:
                logger.warning("Order %s has unpaid items, left pending for the next sweep", order_id)
            else:
                logger.info("Order %s marked as processed for vendor payouts", order_id)

        except Exception as e:
            logger.error("Error processing payouts for order %s: %s", order_id, str(e))
            result.failed += 1
            result.errors.append({"order_id": order_id, "error": str(e)})
            await self._release(order_id, metadata, vendor_payouts, payout_errors, str(e))

    async def _release(
        self,
        order_id: str,
        metadata: dict[str, Any],
        vendor_payouts: list[dict[str, Any]],
        payout_errors: list[dict[str, Any]],
        error: str,
    ) -> None:
        """Hand a claimed order back to the next sweep, keeping recorded payouts."""
        metadata = {
            **metadata,
            "vendorPayouts": vendor_payouts,
            "payoutErrors": [*payout_errors, {"error": error, "timestamp": _now_iso()}],
        }
        try:
            (
                self.client.table(ORDERS_TABLE)
                .update({"metadata": metadata, "vendor_payout_status": "pending", "updated_at": _now_iso()})
                .eq("id", order_id)
                .eq("vendor_payout_status", "processing")
                .execute()
            )
        except Exception as e:
            logger.error("Failed to release payout claim on order %s: %s", order_id, str(e))
