"""Admin view of the webhook ledger."""

from fastapi import APIRouter, Query

from settlement.api.deps import AdminUser
from settlement.schemas.common import ApiResponse, PaginationMeta
from settlement.schemas.webhook import WebhookEventList, WebhookEventResponse
from settlement.services.webhook_ledger import MAX_PAGE_SIZE, WebhookLedger

router = APIRouter(prefix="/api/admin/webhooks", tags=["admin-webhooks"])


@router.get(
    "/events/recent",
    response_model=ApiResponse[WebhookEventList],
    summary="Recent webhook events",
    description="Ledger entries newest first, for investigating deliveries.",
)
async def list_recent_events(
    admin: AdminUser,
    source: str | None = Query(default=None, pattern="^(flutterwave|paystack)$"),
    tx_ref: str | None = None,
    event_id: str | None = None,
    status: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=MAX_PAGE_SIZE),
) -> ApiResponse[WebhookEventList]:
    ledger = WebhookLedger()
    items, total = await ledger.list_recent(
        source=source,
        tx_ref=tx_ref,
        event_id=event_id,
        status=status,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        data=WebhookEventList(
            items=[WebhookEventResponse(**item) for item in items],
            pagination=PaginationMeta(page=page, limit=limit, total=total),
        )
    )
