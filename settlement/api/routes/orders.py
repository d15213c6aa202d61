"""Admin order status and timeline routes."""

from fastapi import APIRouter, Query

from settlement.api.deps import AdminUser
from settlement.schemas.common import ApiResponse
from settlement.schemas.order import OrderResponse, OrderStatusUpdate, TimelineEvent
from settlement.services.order_status_service import OrderStatusService

router = APIRouter(prefix="/api/admin/orders", tags=["admin-orders"])


@router.patch(
    "/{order_id}/status",
    response_model=ApiResponse[OrderResponse],
    summary="Update order status",
    description="Moves an order to a new status, appends history and timeline entries and notifies buyer and vendors.",
)
async def update_order_status(
    order_id: str,
    body: OrderStatusUpdate,
    admin: AdminUser,
) -> ApiResponse[OrderResponse]:
    """Update an order's status.

    Raises:
        InvalidStatusError: 400 if the status is not allowed.
        OrderNotFoundError: 404 if the order does not exist.
    """
    service = OrderStatusService()
    order = await service.update_order_status(
        order_id,
        body.status,
        update_data=body.update_data(),
        actor=str(admin.user_id),
    )
    return ApiResponse(message=f"Order status updated to {body.status}", data=OrderResponse(**order))


@router.get(
    "/{order_id}/timeline",
    response_model=ApiResponse[list[TimelineEvent]],
    summary="Get order timeline",
    description="Timeline events for an order, newest first.",
)
async def get_order_timeline(
    order_id: str,
    admin: AdminUser,
    limit: int = Query(default=100, ge=1, le=500),
) -> ApiResponse[list[TimelineEvent]]:
    service = OrderStatusService()
    events = await service.get_order_timeline(order_id, limit=limit)
    return ApiResponse(data=[TimelineEvent(**event) for event in events])
