"""Idempotency ledger for payment provider webhook events."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from settlement.core.config import get_settings
from settlement.core.exceptions import InfrastructureError
from settlement.core.supabase import get_supabase_client, is_unique_violation
from settlement.models.webhook_event import TERMINAL_STATUSES

logger = logging.getLogger(__name__)

WEBHOOK_EVENTS_TABLE = "webhook_events"

MAX_PAGE_SIZE = 200


@dataclass
class LedgerClaim:
    """Outcome of trying to claim an event for processing."""

    accepted: bool
    attempt: int = 0
    entry: dict[str, Any] = field(default_factory=dict)
    reason: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class WebhookLedger:
    """Records (source, event_id) pairs so each event is applied once.

    The first delivery wins the unique insert. Later deliveries are
    duplicates unless the entry failed, or was left 'recorded' past the
    stale window, and the attempt budget allows another application. The
    re-claim is a compare-and-swap on the attempts counter, so concurrent
    retries still let only one through.
    """

    def __init__(self) -> None:
        """Initialize ledger with clients."""
        self.client = get_supabase_client()
        self.settings = get_settings()

    async def record_if_new(
        self,
        source: str,
        event_id: str,
        tx_ref: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> LedgerClaim:
        """Claim an event for processing.

        Args:
            source: Provider name (e.g. 'flutterwave').
            event_id: Provider event or transaction id.
            tx_ref: Merchant transaction reference, if known.
            meta: Extra context stored with the entry.

        Returns:
            LedgerClaim: accepted=True if the caller should process the event.

        Raises:
            InfrastructureError: On any storage failure other than a
                unique-constraint violation.
        """
        row = {
            "source": source,
            "event_id": str(event_id),
            "tx_ref": tx_ref,
            "status": "recorded",
            "attempts": 1,
            "meta": meta or {},
        }
        try:
            response = self.client.table(WEBHOOK_EVENTS_TABLE).insert(row).execute()
        except Exception as e:
            if is_unique_violation(e):
                return await self._try_reclaim(source, str(event_id))
            logger.error(
                "Webhook ledger insert failed for %s/%s: %s",
                source,
                event_id,
                str(e),
            )
            raise InfrastructureError("Webhook ledger unavailable") from e

        entry = response.data[0] if response.data else row
        logger.info("Recorded webhook event %s/%s", source, event_id)
        return LedgerClaim(accepted=True, attempt=1, entry=entry)

    async def _try_reclaim(self, source: str, event_id: str) -> LedgerClaim:
        """Decide whether an existing entry may be processed again."""
        try:
            response = (
                self.client.table(WEBHOOK_EVENTS_TABLE)
                .select("*")
                .eq("source", source)
                .eq("event_id", event_id)
                .maybe_single()
                .execute()
            )
        except Exception as e:
            logger.error("Webhook ledger lookup failed for %s/%s: %s", source, event_id, str(e))
            raise InfrastructureError("Webhook ledger unavailable") from e

        entry = response.data if response and response.data else None
        if not entry:
            return LedgerClaim(accepted=False, reason="missing")

        status = entry.get("status")
        attempts = int(entry.get("attempts") or 1)

        if status in TERMINAL_STATUSES:
            return LedgerClaim(accepted=False, attempt=attempts, entry=entry, reason=status)

        if attempts >= self.settings.webhook_max_apply_attempts:
            return LedgerClaim(accepted=False, attempt=attempts, entry=entry, reason="attempts_exhausted")

        if status == "recorded":
            updated_at = _parse_timestamp(entry.get("updated_at") or entry.get("created_at"))
            age = (_utcnow() - updated_at).total_seconds() if updated_at else 0
            if age < self.settings.webhook_stale_after_seconds:
                return LedgerClaim(accepted=False, attempt=attempts, entry=entry, reason="in_flight")

        try:
            claimed = (
                self.client.table(WEBHOOK_EVENTS_TABLE)
                .update(
                    {
                        "status": "recorded",
                        "attempts": attempts + 1,
                        "updated_at": _utcnow().isoformat(),
                    }
                )
                .eq("source", source)
                .eq("event_id", event_id)
                .eq("attempts", attempts)
                .execute()
            )
        except Exception as e:
            logger.error("Webhook ledger re-claim failed for %s/%s: %s", source, event_id, str(e))
            raise InfrastructureError("Webhook ledger unavailable") from e

        if not claimed.data:
            # Lost the race to another delivery
            return LedgerClaim(accepted=False, attempt=attempts, entry=entry, reason="claimed_elsewhere")

        logger.info(
            "Re-claimed webhook event %s/%s (attempt %d, previous status %s)",
            source,
            event_id,
            attempts + 1,
            status,
        )
        return LedgerClaim(accepted=True, attempt=attempts + 1, entry=claimed.data[0])

    async def mark_status(
        self,
        source: str,
        event_id: str,
        status: str,
        error: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        """Move an entry to applied, failed or rejected.

        Raises:
            InfrastructureError: If the update cannot be written.
        """
        updates: dict[str, Any] = {
            "status": status,
            "last_error": error,
            "updated_at": _utcnow().isoformat(),
        }
        if meta is not None:
            updates["meta"] = meta

        try:
            (
                self.client.table(WEBHOOK_EVENTS_TABLE)
                .update(updates)
                .eq("source", source)
                .eq("event_id", str(event_id))
                .execute()
            )
        except Exception as e:
            logger.error(
                "Failed to mark webhook event %s/%s as %s: %s",
                source,
                event_id,
                status,
                str(e),
            )
            raise InfrastructureError("Webhook ledger unavailable") from e

    async def list_recent(
        self,
        source: str | None = None,
        tx_ref: str | None = None,
        event_id: str | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[dict[str, Any]], int]:
        """List ledger entries, newest first.

        Returns:
            tuple: (entries, total matching count).
        """
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        offset = (page - 1) * limit

        query = self.client.table(WEBHOOK_EVENTS_TABLE).select("*", count="exact")
        if source:
            query = query.eq("source", source)
        if tx_ref:
            query = query.eq("tx_ref", tx_ref)
        if event_id:
            query = query.eq("event_id", event_id)
        if status:
            query = query.eq("status", status)

        response = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        items = response.data or []
        total = response.count if response.count is not None else len(items)
        return items, total
