"""Background scheduler for the periodic vendor payout sweep."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from settlement.core.config import get_settings
from settlement.core.exceptions import SweepInProgressError

if TYPE_CHECKING:
    from settlement.services.vendor_payout_service import SweepResult, VendorPayoutService

logger = logging.getLogger(__name__)


def _default_service_factory() -> VendorPayoutService:
    from settlement.services.vendor_payout_service import VendorPayoutService

    return VendorPayoutService()


class PayoutScheduler:
    """Runs the payout sweep on an interval, one run at a time per process.

    The manual admin trigger goes through run_once as well, so it shares
    the same guard as the timer.
    """

    def __init__(
        self,
        interval_seconds: int,
        batch_size: int,
        service_factory: Callable[[], VendorPayoutService] | None = None,
    ) -> None:
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self._service_factory = service_factory or _default_service_factory
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None
        self.last_result: SweepResult | None = None

    @property
    def is_running(self) -> bool:
        """True while a sweep is in progress."""
        return self._lock.locked()

    async def run_once(self, limit: int | None = None) -> SweepResult:
        """Run one sweep now.

        Raises:
            SweepInProgressError: If a sweep is already running.
        """
        if self._lock.locked():
            raise SweepInProgressError("A payout sweep is already running")

        async with self._lock:
            logger.info("Starting vendor payout sweep")
            service = self._service_factory()
            result = await service.process_completed_order_payouts(limit=limit or self.batch_size)
            self.last_result = result
            return result

    async def start(self) -> None:
        """Start the background sweep loop."""
        if self._task is None:
            self._task = asyncio.create_task(self._loop())
            logger.info("Payout scheduler started (every %ds)", self.interval_seconds)

    async def stop(self) -> None:
        """Stop the background sweep loop."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Payout scheduler stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except SweepInProgressError:
                logger.info("Skipping scheduled sweep, previous run still in progress")
            except Exception as e:
                logger.error("Scheduled payout sweep failed: %s", str(e))


# Global singleton instance
_scheduler: PayoutScheduler | None = None


def get_payout_scheduler() -> PayoutScheduler:
    """Get or create the global payout scheduler."""
    global _scheduler
    if _scheduler is None:
        settings = get_settings()
        _scheduler = PayoutScheduler(
            interval_seconds=settings.payout_sweep_interval_seconds,
            batch_size=settings.payout_sweep_batch_size,
        )
    return _scheduler


async def init_payout_scheduler() -> PayoutScheduler:
    """Start the sweep loop if enabled. Call at app startup."""
    scheduler = get_payout_scheduler()
    if get_settings().payout_sweep_enabled:
        await scheduler.start()
    return scheduler


async def shutdown_payout_scheduler() -> None:
    """Stop the sweep loop. Call at app shutdown."""
    global _scheduler
    if _scheduler:
        await _scheduler.stop()
