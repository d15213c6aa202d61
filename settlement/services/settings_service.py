"""Marketplace settings store with a cached commission-rate accessor."""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from threading import Lock
from typing import Any, Awaitable, Callable

from settlement.core.config import get_settings
from settlement.core.money import to_decimal
from settlement.core.supabase import get_supabase_client, is_unique_violation

logger = logging.getLogger(__name__)

SETTINGS_TABLE = "settings"

# Fields an admin may change through update_settings
ALLOWED_SETTING_FIELDS: frozenset[str] = frozenset(
    {
        "commission_rate",
        "currencies",
        "minimum_order_amount",
        "maximum_order_amount",
        "enable_paystack",
        "enable_crypto",
        "enable_nft",
        "enable_notifications",
    }
)


@dataclass
class _CachedRate:
    rate: Decimal
    loaded_at: float


class CommissionRateCache:
    """Read-through cache for the marketplace commission rate.

    The rate changes only through admin action, so a short TTL plus
    explicit invalidation on update keeps reads off the database.
    """

    def __init__(self, ttl_seconds: int) -> None:
        self.ttl_seconds = ttl_seconds
        self._entry: _CachedRate | None = None
        self._lock = Lock()

    async def get(self, loader: Callable[[], Awaitable[Decimal]]) -> Decimal:
        """Return the cached rate, loading it when missing or expired."""
        with self._lock:
            entry = self._entry
        if entry and (time.monotonic() - entry.loaded_at) < self.ttl_seconds:
            return entry.rate

        rate = await loader()
        with self._lock:
            self._entry = _CachedRate(rate=rate, loaded_at=time.monotonic())
        return rate

    def invalidate(self) -> None:
        """Drop the cached rate so the next read goes to storage."""
        with self._lock:
            self._entry = None


_rate_cache: CommissionRateCache | None = None


def get_commission_rate_cache() -> CommissionRateCache:
    """Get or create the process-wide commission rate cache."""
    global _rate_cache
    if _rate_cache is None:
        _rate_cache = CommissionRateCache(get_settings().settings_cache_ttl_seconds)
    return _rate_cache


class MarketplaceSettingsService:
    """Service for the per-type settings records."""

    def __init__(self, rate_cache: CommissionRateCache | None = None) -> None:
        """Initialize settings service with clients."""
        self.client = get_supabase_client()
        self.settings = get_settings()
        self.rate_cache = rate_cache or get_commission_rate_cache()

    async def get_or_create_default(self, settings_type: str = "marketplace") -> dict[str, Any]:
        """Get settings for a type, creating the default row if missing.

        Args:
            settings_type: Settings type key (e.g. 'marketplace').

        Returns:
            dict: Settings row.
        """
        response = (
            self.client.table(SETTINGS_TABLE)
            .select("*")
            .eq("type", settings_type)
            .maybe_single()
            .execute()
        )
        if response and response.data:
            return response.data

        row = {
            "type": settings_type,
            "commission_rate": str(self.settings.default_commission_rate),
            "version": 1,
        }
        try:
            created = self.client.table(SETTINGS_TABLE).insert(row).execute()
            logger.info("Created default %s settings", settings_type)
            return created.data[0]
        except Exception as e:
            if not is_unique_violation(e):
                raise
            # Another worker created it first
            response = (
                self.client.table(SETTINGS_TABLE)
                .select("*")
                .eq("type", settings_type)
                .single()
                .execute()
            )
            return response.data

    async def _load_commission_rate(self) -> Decimal:
        row = await self.get_or_create_default("marketplace")
        raw = row.get("commission_rate")
        if raw is None:
            return self.settings.default_commission_rate
        return to_decimal(raw)

    async def get_commission_rate(self) -> Decimal:
        """Current marketplace commission rate as a fraction (e.g. 0.10)."""
        return await self.rate_cache.get(self._load_commission_rate)

    async def update_settings(
        self,
        settings_type: str,
        updates: dict[str, Any],
        updated_by: str | None = None,
    ) -> dict[str, Any]:
        """Apply whitelisted updates to a settings record.

        Unknown fields are dropped. The commission-rate cache is invalidated
        after a successful write.

        Args:
            settings_type: Settings type key.
            updates: Field updates.
            updated_by: Admin user id making the change.

        Returns:
            dict: Updated settings row.

        Raises:
            ValueError: If commission_rate is outside [0, 1].
        """
        filtered = {k: v for k, v in updates.items() if k in ALLOWED_SETTING_FIELDS}

        if "commission_rate" in filtered:
            rate = to_decimal(filtered["commission_rate"])
            if rate < 0 or rate > 1:
                raise ValueError("Commission rate must be between 0 and 1")
            filtered["commission_rate"] = str(rate)

        current = await self.get_or_create_default(settings_type)
        filtered["last_updated_by"] = updated_by
        filtered["version"] = int(current.get("version") or 1) + 1

        response = (
            self.client.table(SETTINGS_TABLE)
            .update(filtered)
            .eq("type", settings_type)
            .execute()
        )
        self.rate_cache.invalidate()

        logger.info(
            "Settings %s updated by %s: %s",
            settings_type,
            updated_by,
            sorted(k for k in filtered if k not in ("last_updated_by", "version")),
        )
        return response.data[0] if response.data else {**current, **filtered}
