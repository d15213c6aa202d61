"""Order status reconciliation, timeline journaling and order notifications."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from settlement.core.exceptions import InfrastructureError, InvalidStatusError, OrderNotFoundError
from settlement.core.money import to_decimal
from settlement.core.supabase import get_supabase_client
from settlement.models.order import RECONCILABLE_STATUSES, STATUS_TIMESTAMP_FIELDS
from settlement.services.notification_service import (
    NotificationSink,
    SupabaseNotificationSink,
    notify_safely,
)

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"
TIMELINE_TABLE = "order_timeline"
ORDER_NOTIFICATIONS_TABLE = "order_notifications"

# Postgres function applying a status change with its history and timeline rows
APPLY_STATUS_FUNCTION = "apply_order_status"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_safe(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    return value


def item_vendor_id(item: dict[str, Any]) -> str | None:
    """Vendor of a line item, from the item itself or its product snapshot."""
    vendor_id = item.get("vendor_id")
    if not vendor_id:
        product = item.get("product") or {}
        if isinstance(product, dict):
            vendor_id = product.get("vendor_id")
    return str(vendor_id) if vendor_id else None


def item_total(item: dict[str, Any]) -> Decimal:
    """Price times quantity for a line item. A missing quantity is one unit."""
    return to_decimal(item.get("price") or 0) * int(item.get("quantity") or 1)


def buyer_status_message(order_number: str, status: str, update_data: dict[str, Any]) -> str:
    """Buyer-facing message for an order status change."""
    if status == "processing":
        return f"Your order {order_number} is now being processed."
    if status == "shipped":
        message = f"Your order {order_number} has been shipped."
        if update_data.get("tracking_number"):
            message += f" Tracking number: {update_data['tracking_number']}"
        return message
    if status == "delivered":
        return f"Your order {order_number} has been delivered."
    if status == "completed":
        return f"Your order {order_number} is completed. Thank you for your purchase!"
    if status in ("cancelled", "refunded"):
        message = f"Your order {order_number} has been {status}."
        if update_data.get("reason"):
            message += f" Reason: {update_data['reason']}"
        return message
    return f"Your order {order_number} status has been updated to {status}."


class OrderStatusService:
    """Drives orders through their status machine and journals every change.

    Each status change writes one status-history row and one timeline row
    in the same database transaction as the order update.
    Both tables are insert-only, so concurrent writers never lose entries.
    Buyer and vendor notifications go through the injected sink and never
    undo a status change that was already stored.
    """

    def __init__(self, notifier: NotificationSink | None = None) -> None:
        """Initialize order status service with clients."""
        self.client = get_supabase_client()
        self.notifier = notifier or SupabaseNotificationSink()

    async def get_order(self, order_id: str) -> dict[str, Any]:
        """Fetch an order by id.

        Raises:
            OrderNotFoundError: If the order does not exist.
        """
        response = (
            self.client.table(ORDERS_TABLE)
            .select("*")
            .eq("id", order_id)
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return response.data

    async def update_order_status(
        self,
        order_id: str,
        new_status: str,
        update_data: dict[str, Any] | None = None,
        actor: str | None = None,
    ) -> dict[str, Any]:
        """Move an order to a new status.

        Args:
            order_id: Order UUID.
            new_status: One of the reconcilable statuses.
            update_data: Optional notes, tracking_number, carrier,
                estimated_delivery and reason.
            actor: User id making the change.

        Returns:
            dict: Updated order row.

        Raises:
            InvalidStatusError: If new_status is not allowed.
            OrderNotFoundError: If the order does not exist.
            InfrastructureError: If the change could not be stored. Nothing
                was written in that case.
        """
        update_data = {k: v for k, v in (update_data or {}).items() if v is not None}

        if new_status not in RECONCILABLE_STATUSES:
            raise InvalidStatusError(
                f"Invalid status: {new_status}",
                details={"allowed": list(RECONCILABLE_STATUSES)},
            )

        order = await self.get_order(order_id)
        now = _now_iso()

        fields: dict[str, Any] = {"status": new_status, "updated_at": now}
        timestamp_field = STATUS_TIMESTAMP_FIELDS.get(new_status)
        if timestamp_field:
            fields[timestamp_field] = now

        if new_status == "shipped":
            for key in ("tracking_number", "carrier", "estimated_delivery"):
                if update_data.get(key):
                    fields[key] = _json_safe(update_data[key])
            if actor:
                fields["shipped_by"] = actor
        elif new_status == "delivered":
            if actor:
                fields["delivered_by"] = actor
        elif new_status == "cancelled":
            if update_data.get("reason"):
                fields["cancellation_reason"] = update_data["reason"]
        elif new_status == "refunded":
            if update_data.get("reason"):
                fields["refund_reason"] = update_data["reason"]

        # Order row, history row and timeline row commit together or not at all
        try:
            response = self.client.rpc(
                APPLY_STATUS_FUNCTION,
                {
                    "p_order_id": order_id,
                    "p_fields": fields,
                    "p_notes": update_data.get("notes", ""),
                    "p_actor": actor,
                    "p_event": f"status_{new_status}",
                    "p_details": _json_safe(update_data),
                },
            ).execute()
        except Exception as e:
            logger.error("Failed to update order %s to %s: %s", order_id, new_status, str(e))
            raise InfrastructureError("Failed to update order status") from e

        if not response.data:
            raise OrderNotFoundError(f"Order {order_id} not found")

        updated = response.data[0] if isinstance(response.data, list) else response.data
        logger.info(
            "Order %s status updated to %s",
            order.get("order_number", order_id),
            new_status,
            extra={"order_id": order_id, "actor": actor},
        )

        await self.send_status_notifications(order, new_status, update_data)
        return updated

    async def send_status_notifications(
        self,
        order: dict[str, Any],
        status: str,
        update_data: dict[str, Any] | None = None,
    ) -> int:
        """Notify the buyer and each distinct vendor of a status change.

        Failures are logged and swallowed.

        Returns:
            int: Number of notifications the sink accepted.
        """
        update_data = _json_safe(update_data or {})
        order_number = order.get("order_number") or str(order.get("id"))
        payload = {
            "order_id": str(order.get("id")),
            "order_number": order_number,
            "status": status,
            **update_data,
        }
        title = f"Order {order_number} Status Update"
        sent = 0

        buyer_id = order.get("user_id")
        if buyer_id:
            if await notify_safely(
                self.notifier,
                str(buyer_id),
                title,
                buyer_status_message(order_number, status, update_data),
                "order_status_update",
                payload,
            ):
                sent += 1

        notified: set[str] = set()
        for item in order.get("items") or []:
            vendor_id = item_vendor_id(item)
            if not vendor_id or vendor_id in notified:
                continue
            notified.add(vendor_id)
            if await notify_safely(
                self.notifier,
                vendor_id,
                title,
                f"Order {order_number} status has been updated to {status}.",
                "vendor_order_status_update",
                payload,
            ):
                sent += 1

        return sent

    async def add_timeline_event(
        self,
        order_id: str,
        event: str,
        details: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Append an event to an order's timeline.

        Raises:
            InfrastructureError: If the row cannot be written.
        """
        row = {"order_id": order_id, "event": event, "details": details or {}}
        try:
            response = self.client.table(TIMELINE_TABLE).insert(row).execute()
        except Exception as e:
            logger.error("Failed to add timeline event %s to order %s: %s", event, order_id, str(e))
            raise InfrastructureError("Failed to write order timeline") from e
        return response.data[0] if response.data else row

    async def get_order_timeline(self, order_id: str, limit: int = 100) -> list[dict[str, Any]]:
        """Timeline events for an order, newest first."""
        await self.get_order(order_id)
        response = (
            self.client.table(TIMELINE_TABLE)
            .select("*")
            .eq("order_id", order_id)
            .order("created_at", desc=True)
            .order("id", desc=True)
            .limit(limit)
            .execute()
        )
        return response.data or []

    async def add_order_notification(self, order_id: str, notification: dict[str, Any]) -> dict[str, Any]:
        """Attach a notification record to an order.

        Raises:
            OrderNotFoundError: If the order does not exist.
        """
        await self.get_order(order_id)
        row = {
            "order_id": order_id,
            "type": notification.get("type", "info"),
            "message": notification.get("message", ""),
            "data": _json_safe(notification.get("data") or {}),
            "read": False,
        }
        response = self.client.table(ORDER_NOTIFICATIONS_TABLE).insert(row).execute()
        return response.data[0] if response.data else row
