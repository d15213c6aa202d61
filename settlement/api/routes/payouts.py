"""Payout API routes for admins and vendors."""

import logging

from fastapi import APIRouter, Query

from settlement.api.deps import AdminUser, CurrentUser
from settlement.api.middleware.error_handler import ValidationError
from settlement.core.scheduler import get_payout_scheduler
from settlement.schemas.common import ApiResponse
from settlement.schemas.payment_preferences import PaymentPreferencesResponse, PaymentPreferencesUpdate
from settlement.schemas.payout import PayoutHistoryItem, PayoutStatusUpdate, SweepRequest, SweepResponse
from settlement.services.payment_preferences_service import PaymentPreferencesService
from settlement.services.payout_service import PayoutService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/payouts", tags=["admin-payouts"])


@router.get(
    "",
    response_model=ApiResponse[list[PayoutHistoryItem]],
    summary="List payouts",
    description="Payout history across payees, newest first.",
)
async def list_payouts(
    admin: AdminUser,
    payee_type: str | None = Query(default=None, pattern="^(vendor|admin)$"),
    payee_id: str | None = None,
    status: str | None = None,
    method: str | None = None,
    limit: int = Query(default=100, ge=1, le=500),
) -> ApiResponse[list[PayoutHistoryItem]]:
    service = PayoutService()
    rows = await service.list_payouts(
        payee_type=payee_type,
        payee_id=payee_id,
        status=status,
        method=method,
        limit=limit,
    )
    return ApiResponse(data=[PayoutHistoryItem(**row) for row in rows])


@router.post(
    "/process",
    response_model=ApiResponse[SweepResponse],
    summary="Run the vendor payout sweep",
    description="Processes vendor payouts for completed orders now. Returns 409 if a sweep is already running.",
)
async def process_payouts(admin: AdminUser, body: SweepRequest | None = None) -> ApiResponse[SweepResponse]:
    """Trigger the payout sweep manually.

    Shares the in-process guard with the scheduled sweep.

    Raises:
        SweepInProgressError: 409 if a sweep is already running.
    """
    limit = body.limit if body else None
    logger.info("Manual payout sweep requested by %s", admin.user_id)
    result = await get_payout_scheduler().run_once(limit=limit)
    return ApiResponse(
        message=f"Processed {result.processed} orders",
        data=SweepResponse(**result.to_dict()),
    )


@router.get(
    "/{transaction_id}",
    response_model=ApiResponse[list[PayoutHistoryItem]],
    summary="Get payout",
    description="All history rows of a payout, oldest first.",
)
async def get_payout(transaction_id: str, admin: AdminUser) -> ApiResponse[list[PayoutHistoryItem]]:
    service = PayoutService()
    rows = await service.get_payout(transaction_id)
    return ApiResponse(data=[PayoutHistoryItem(**row) for row in rows])


@router.post(
    "/{transaction_id}/status",
    response_model=ApiResponse[PayoutHistoryItem],
    summary="Update payout status",
    description="Records an operator status transition as a new history row and notifies the payee.",
)
async def update_payout_status(
    transaction_id: str,
    body: PayoutStatusUpdate,
    admin: AdminUser,
) -> ApiResponse[PayoutHistoryItem]:
    """Record an operator status change for a manual payout.

    Raises:
        PayoutNotFoundError: 404 if the payout does not exist.
        InvalidStatusError: 400 if the payout is already final.
    """
    service = PayoutService()
    row = await service.update_payout_status(
        transaction_id,
        body.status,
        note=body.note,
        actor=str(admin.user_id),
    )
    return ApiResponse(message=f"Payout marked {body.status}", data=PayoutHistoryItem(**row))


# Vendor router - mounted separately at /api/marketplace/vendors/me
vendor_router = APIRouter(prefix="/api/marketplace/vendors/me", tags=["vendor-payouts"])


@vendor_router.get(
    "/payment-preferences",
    response_model=ApiResponse[PaymentPreferencesResponse],
    summary="Get my payment preferences",
)
async def get_vendor_preferences(user: CurrentUser) -> ApiResponse[PaymentPreferencesResponse]:
    service = PaymentPreferencesService()
    preferences = await service.get_preferences("vendor", str(user.user_id))
    return ApiResponse(data=PaymentPreferencesResponse(**preferences))


@vendor_router.put(
    "/payment-preferences",
    response_model=ApiResponse[PaymentPreferencesResponse],
    summary="Update my payment preferences",
    description="Partial update. Method blocks are merged into the stored block.",
)
async def update_vendor_preferences(
    body: PaymentPreferencesUpdate,
    user: CurrentUser,
) -> ApiResponse[PaymentPreferencesResponse]:
    service = PaymentPreferencesService()
    try:
        preferences = await service.update_preferences("vendor", str(user.user_id), body.to_updates())
    except ValueError as e:
        raise ValidationError(str(e)) from e
    return ApiResponse(message="Payment preferences updated", data=PaymentPreferencesResponse(**preferences))


@vendor_router.get(
    "/payouts",
    response_model=ApiResponse[list[PayoutHistoryItem]],
    summary="Get my payouts",
    description="The caller's own payout history, newest first.",
)
async def get_vendor_payouts(
    user: CurrentUser,
    status: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
) -> ApiResponse[list[PayoutHistoryItem]]:
    service = PayoutService()
    rows = await service.get_payout_history("vendor", str(user.user_id), limit=limit, status=status)
    return ApiResponse(data=[PayoutHistoryItem(**row) for row in rows])
