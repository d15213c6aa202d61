"""Payout preference documents for vendors and the platform admin."""

import logging
from typing import Any

from settlement.core.supabase import get_supabase_client, is_unique_violation
from settlement.models.payout import DEFAULT_METHOD_BY_PAYEE, METHOD_COLUMNS, PAYOUT_METHOD_KEYS

logger = logging.getLogger(__name__)

PAYMENT_PREFERENCES_TABLE = "payment_preferences"

# Fields a payee may change. payee_type and payee_id are never updatable.
UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        *METHOD_COLUMNS.values(),
        "default_payment_method",
        "auto_payout_enabled",
        "payout_schedule",
        "withdrawal_preferences",
        "payout_notifications",
        "tax_information",
    }
)


def default_preferences(payee_type: str, payee_id: str) -> dict[str, Any]:
    """Preference document with every payout method disabled."""
    return {
        "payee_type": payee_type,
        "payee_id": str(payee_id),
        **{column: {"enabled": False} for column in METHOD_COLUMNS.values()},
        "default_payment_method": DEFAULT_METHOD_BY_PAYEE.get(payee_type, "mobileMoney"),
        "withdrawal_preferences": {"minimum_amount": 10, "frequency": "weekly"},
        "payout_schedule": "weekly",
        "auto_payout_enabled": True,
        "payout_notifications": True,
        "tax_information": {},
        "is_verified": False,
    }


def method_block(preferences: dict[str, Any], method_key: str) -> dict[str, Any]:
    """The stored block for a payout method key, or an empty dict."""
    column = METHOD_COLUMNS.get(method_key)
    if not column:
        return {}
    return preferences.get(column) or {}


class PaymentPreferencesService:
    """Reads and writes payment_preferences rows."""

    def __init__(self) -> None:
        """Initialize preferences service with clients."""
        self.client = get_supabase_client()

    async def _fetch(self, payee_type: str, payee_id: str) -> dict[str, Any] | None:
        response = (
            self.client.table(PAYMENT_PREFERENCES_TABLE)
            .select("*")
            .eq("payee_type", payee_type)
            .eq("payee_id", str(payee_id))
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def get_preferences(self, payee_type: str, payee_id: str) -> dict[str, Any]:
        """Stored preferences, or an unsaved all-disabled default."""
        stored = await self._fetch(payee_type, payee_id)
        return stored or default_preferences(payee_type, payee_id)

    async def get_or_create(self, payee_type: str, payee_id: str) -> dict[str, Any]:
        """Fetch preferences, creating the default row on first access."""
        stored = await self._fetch(payee_type, payee_id)
        if stored:
            return stored

        try:
            response = (
                self.client.table(PAYMENT_PREFERENCES_TABLE)
                .insert(default_preferences(payee_type, payee_id))
                .execute()
            )
            logger.info("Created payment preferences for %s %s", payee_type, payee_id)
            return response.data[0]
        except Exception as e:
            if not is_unique_violation(e):
                raise
            return await self._fetch(payee_type, payee_id) or default_preferences(payee_type, payee_id)

    async def update_preferences(
        self,
        payee_type: str,
        payee_id: str,
        updates: dict[str, Any],
    ) -> dict[str, Any]:
        """Apply whitelisted updates to a payee's preferences.

        Method blocks are merged into the stored block so a partial update
        keeps fields it does not mention.

        Raises:
            ValueError: If default_payment_method is not a known method.
        """
        filtered = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS and v is not None}

        default_method = filtered.get("default_payment_method")
        if default_method is not None and default_method not in PAYOUT_METHOD_KEYS:
            raise ValueError(f"Unknown payment method: {default_method}")

        current = await self.get_or_create(payee_type, payee_id)
        for column in METHOD_COLUMNS.values():
            if column in filtered:
                filtered[column] = {**(current.get(column) or {}), **filtered[column]}

        if not filtered:
            return current

        response = (
            self.client.table(PAYMENT_PREFERENCES_TABLE)
            .update(filtered)
            .eq("payee_type", payee_type)
            .eq("payee_id", str(payee_id))
            .execute()
        )
        logger.info(
            "Updated payment preferences for %s %s: %s",
            payee_type,
            payee_id,
            sorted(filtered),
        )
        return response.data[0] if response.data else {**current, **filtered}
