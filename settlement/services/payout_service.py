"""Payout routing and the append-only payout history."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from settlement.core.exceptions import (
    InfrastructureError,
    InvalidRequestError,
    InvalidStatusError,
    MissingPayoutDetailsError,
    PayoutMethodDisabledError,
    PayoutNotFoundError,
)
from settlement.core.money import round_money
from settlement.core.supabase import get_supabase_client
from settlement.models.payout import DEFAULT_METHOD_BY_PAYEE, OPERATOR_PAYOUT_STATUSES
from settlement.services.notification_service import (
    NotificationSink,
    SupabaseNotificationSink,
    notify_safely,
)
from settlement.services.payment_preferences_service import (
    PaymentPreferencesService,
    method_block,
)
from settlement.services.payout_methods import Payee, PayoutResult, get_payout_method

logger = logging.getLogger(__name__)

PAYOUT_HISTORY_TABLE = "payout_history"

FINAL_PAYOUT_STATUSES: frozenset[str] = frozenset({"completed", "failed", "cancelled"})


def _json_safe(details: dict[str, Any]) -> dict[str, Any]:
    safe: dict[str, Any] = {}
    for key, value in details.items():
        if isinstance(value, Decimal):
            safe[key] = float(value)
        elif isinstance(value, datetime):
            safe[key] = value.isoformat()
        else:
            safe[key] = value
    return safe


class PayoutService:
    """Dispatches payouts to the payee's chosen method and records every attempt.

    History rows are only ever inserted. A status change for an existing
    payout is a new row carrying the same transaction id, so concurrent
    payouts for one payee cannot overwrite each other.
    """

    def __init__(
        self,
        preferences_service: PaymentPreferencesService | None = None,
        notifier: NotificationSink | None = None,
    ) -> None:
        """Initialize payout service with clients."""
        self.client = get_supabase_client()
        self.preferences_service = preferences_service or PaymentPreferencesService()
        self.notifier = notifier or SupabaseNotificationSink()

    async def process_payout(
        self,
        payee: Payee,
        amount: Any,
        currency: str,
        details: dict[str, Any] | None = None,
    ) -> PayoutResult:
        """Record a payout to a payee through their default payment method.

        Successes and failures both land in payout_history. Only successes
        notify the payee.

        Args:
            payee: Vendor or admin receiving the funds.
            amount: Amount in major units.
            currency: Currency code.
            details: Context stored with the attempt (order id, etc.).

        Returns:
            PayoutResult: Recorded intent, status ``pending_manual``.

        Raises:
            PayoutMethodDisabledError: Default method missing or not enabled.
            MissingPayoutDetailsError: Enabled method lacks required fields.
            InfrastructureError: If the history row cannot be written.
        """
        details = _json_safe(details or {})
        amount_dec = round_money(amount)
        if amount_dec < 0:
            raise InvalidRequestError("Payout amount must be non-negative")

        preferences = await self.preferences_service.get_preferences(payee.payee_type, payee.payee_id)
        method_key = preferences.get("default_payment_method") or DEFAULT_METHOD_BY_PAYEE.get(
            payee.payee_type, "mobileMoney"
        )

        try:
            block = method_block(preferences, method_key)
            if not block.get("enabled"):
                raise PayoutMethodDisabledError(
                    f"Preferred payment method ({method_key}) is not enabled",
                    details={"method": method_key},
                )
            handler = get_payout_method(method_key)
            result = await handler.dispatch(payee, amount_dec, currency, block, details)
        except (PayoutMethodDisabledError, MissingPayoutDetailsError) as e:
            logger.warning(
                "Payout to %s %s failed: %s",
                payee.payee_type,
                payee.payee_id,
                e.message,
            )
            failed = PayoutResult(
                status="failed",
                method=method_key,
                amount=amount_dec,
                currency=currency,
                transaction_id=None,
                details={**details, "error": e.message},
            )
            try:
                await self._record(payee, failed, details.get("order_id"))
            except InfrastructureError:
                logger.error("Failed payout attempt for %s %s was not recorded", payee.payee_type, payee.payee_id)
            raise

        await self._record(payee, result, details.get("order_id"))

        await notify_safely(
            self.notifier,
            payee.payee_id,
            "Payout Processed",
            f"A payout of {result.amount} {result.currency} has been processed to your {method_key} account.",
            "payout_processed",
            {
                "transaction_id": result.transaction_id,
                "amount": float(result.amount),
                "currency": result.currency,
                "method": result.method,
                "status": result.status,
            },
        )
        return result

    async def _record(self, payee: Payee, result: PayoutResult, order_id: Any = None) -> dict[str, Any]:
        row = {
            "payee_type": payee.payee_type,
            "payee_id": payee.payee_id,
            "order_id": str(order_id) if order_id else None,
            "amount": str(result.amount),
            "currency": result.currency,
            "method": result.method,
            "status": result.status,
            "transaction_id": result.transaction_id,
            "details": result.details,
            "processed_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            response = self.client.table(PAYOUT_HISTORY_TABLE).insert(row).execute()
        except Exception as e:
            logger.error("Failed to record payout for %s %s: %s", payee.payee_type, payee.payee_id, str(e))
            raise InfrastructureError("Failed to record payout") from e
        return response.data[0] if response.data else row

    async def get_payout_history(
        self,
        payee_type: str,
        payee_id: str,
        limit: int = 50,
        status: str | None = None,
    ) -> list[dict[str, Any]]:
        """A payee's payout history rows, newest first."""
        query = (
            self.client.table(PAYOUT_HISTORY_TABLE)
            .select("*")
            .eq("payee_type", payee_type)
            .eq("payee_id", str(payee_id))
        )
        if status:
            query = query.eq("status", status)
        response = query.order("processed_at", desc=True).order("id", desc=True).limit(limit).execute()
        return response.data or []

    async def list_payouts(
        self,
        payee_type: str | None = None,
        payee_id: str | None = None,
        status: str | None = None,
        method: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Payout history across payees, newest first."""
        query = self.client.table(PAYOUT_HISTORY_TABLE).select("*")
        if payee_type:
            query = query.eq("payee_type", payee_type)
        if payee_id:
            query = query.eq("payee_id", str(payee_id))
        if status:
            query = query.eq("status", status)
        if method:
            query = query.eq("method", method)
        response = query.order("processed_at", desc=True).order("id", desc=True).limit(limit).execute()
        return response.data or []

    async def get_payout(self, transaction_id: str) -> list[dict[str, Any]]:
        """Every history row for a transaction id, oldest first.

        Raises:
            PayoutNotFoundError: If no row has the transaction id.
        """
        response = (
            self.client.table(PAYOUT_HISTORY_TABLE)
            .select("*")
            .eq("transaction_id", transaction_id)
            .order("processed_at")
            .order("id")
            .execute()
        )
        if not response.data:
            raise PayoutNotFoundError(f"Payout {transaction_id} not found")
        return response.data

    async def update_payout_status(
        self,
        transaction_id: str,
        status: str,
        note: str | None = None,
        actor: str | None = None,
        payee: Payee | None = None,
    ) -> dict[str, Any]:
        """Record an operator status change for a payout.

        Args:
            transaction_id: Payout transaction id.
            status: processing, completed, failed or cancelled.
            note: Free-text operator note.
            actor: User id recording the change.
            payee: If given, the payout must belong to this payee.

        Returns:
            dict: The new history row.

        Raises:
            InvalidStatusError: Unknown status, or payout already final.
            PayoutNotFoundError: No such payout for the payee.
        """
        if status not in OPERATOR_PAYOUT_STATUSES:
            raise InvalidStatusError(
                f"Invalid payout status: {status}",
                details={"allowed": list(OPERATOR_PAYOUT_STATUSES)},
            )

        rows = await self.get_payout(transaction_id)
        latest = rows[-1]
        if payee and (latest["payee_type"] != payee.payee_type or str(latest["payee_id"]) != payee.payee_id):
            raise PayoutNotFoundError(f"Payout {transaction_id} not found")
        if latest["status"] in FINAL_PAYOUT_STATUSES:
            raise InvalidStatusError(f"Payout {transaction_id} is already {latest['status']}")

        owner = Payee(payee_type=latest["payee_type"], payee_id=str(latest["payee_id"]))
        transition = PayoutResult(
            status=status,
            method=latest["method"],
            amount=round_money(latest["amount"]),
            currency=latest["currency"],
            transaction_id=transaction_id,
            details={
                "previous_status": latest["status"],
                "note": note,
                "updated_by": actor,
            },
        )
        row = await self._record(owner, transition, latest.get("order_id"))
        logger.info(
            "Payout %s moved from %s to %s",
            transaction_id,
            latest["status"],
            status,
            extra={"actor": actor},
        )

        await notify_safely(
            self.notifier,
            owner.payee_id,
            "Payout Update",
            f"Your payout of {transition.amount} {transition.currency} is now {status}.",
            "payout_status_update",
            {"transaction_id": transaction_id, "status": status},
        )
        return row
