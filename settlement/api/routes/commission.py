"""Admin commission API routes."""

from fastapi import APIRouter, Query, status

from settlement.api.deps import AdminUser
from settlement.schemas.commission import CommissionReport, CommissionSummary, CommissionWithdrawRequest
from settlement.schemas.common import ApiResponse
from settlement.schemas.payout import PayoutHistoryItem, PayoutResultResponse
from settlement.services.admin_commission_service import AdminCommissionService

router = APIRouter(prefix="/api/admin/commission", tags=["admin-commission"])


@router.get(
    "/report",
    response_model=ApiResponse[CommissionReport],
    summary="Commission report",
    description="Per-vendor revenue and commission for completed orders in the period, plus totals.",
)
async def get_commission_report(
    admin: AdminUser,
    period: str = Query(default="30d", description="7d, 30d or 90d"),
) -> ApiResponse[CommissionReport]:
    service = AdminCommissionService()
    report = await service.get_commission_report(period)
    return ApiResponse(data=CommissionReport(**report))


@router.get(
    "/total",
    response_model=ApiResponse[CommissionSummary],
    summary="Withdrawable commission",
    description="Commission earned on paid-out orders, the amount already withdrawn and the available balance.",
)
async def get_commission_total(admin: AdminUser) -> ApiResponse[CommissionSummary]:
    """Return the admin's commission balance.

    Only completed orders whose vendor payouts were processed count.
    """
    service = AdminCommissionService()
    summary = await service.get_commission_summary()
    return ApiResponse(data=CommissionSummary(**summary))


@router.post(
    "/withdraw",
    response_model=ApiResponse[PayoutResultResponse],
    status_code=status.HTTP_200_OK,
    summary="Withdraw commission",
    description="Pays commission out through the admin's default payout method.",
)
async def withdraw_commission(
    body: CommissionWithdrawRequest,
    admin: AdminUser,
) -> ApiResponse[PayoutResultResponse]:
    """Withdraw commission to the calling admin.

    Raises:
        InvalidRequestError: 400 on wrong currency or non-positive amount.
        InsufficientCommissionError: 400 if the amount exceeds the balance.
        PayoutMethodDisabledError: 400 if the admin's method is not enabled.
        MissingPayoutDetailsError: 400 if the method lacks required fields.
    """
    service = AdminCommissionService()
    result = await service.withdraw_commission(
        admin_id=str(admin.user_id),
        amount=body.amount,
        currency=body.currency,
        withdrawal_details=body.withdrawal_details,
        admin_name=admin.display_name or admin.email,
    )
    return ApiResponse(
        message="Commission withdrawal recorded",
        data=PayoutResultResponse(**result.to_dict()),
    )


@router.get(
    "/history",
    response_model=ApiResponse[list[PayoutHistoryItem]],
    summary="Withdrawal history",
)
async def get_withdrawal_history(
    admin: AdminUser,
    status: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
) -> ApiResponse[list[PayoutHistoryItem]]:
    service = AdminCommissionService()
    rows = await service.get_withdrawal_history(str(admin.user_id), limit=limit, status=status)
    return ApiResponse(data=[PayoutHistoryItem(**row) for row in rows])
