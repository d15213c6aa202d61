"""Admin marketplace settings and payment preference routes."""

from fastapi import APIRouter

from settlement.api.deps import AdminUser
from settlement.api.middleware.error_handler import ValidationError
from settlement.schemas.common import ApiResponse
from settlement.schemas.payment_preferences import PaymentPreferencesResponse, PaymentPreferencesUpdate
from settlement.schemas.settings import MarketplaceSettingsResponse, MarketplaceSettingsUpdate
from settlement.services.payment_preferences_service import PaymentPreferencesService
from settlement.services.settings_service import MarketplaceSettingsService

router = APIRouter(prefix="/api/admin", tags=["admin-settings"])


@router.get(
    "/settings",
    response_model=ApiResponse[MarketplaceSettingsResponse],
    summary="Get marketplace settings",
    description="Returns the marketplace settings record, creating the default if none exists.",
)
async def get_settings_record(admin: AdminUser) -> ApiResponse[MarketplaceSettingsResponse]:
    service = MarketplaceSettingsService()
    record = await service.get_or_create_default("marketplace")
    return ApiResponse(data=MarketplaceSettingsResponse(**record))


@router.put(
    "/settings",
    response_model=ApiResponse[MarketplaceSettingsResponse],
    summary="Update marketplace settings",
    description="Partial update. A commission rate change takes effect for the next payout computed.",
)
async def update_settings_record(
    body: MarketplaceSettingsUpdate,
    admin: AdminUser,
) -> ApiResponse[MarketplaceSettingsResponse]:
    """Update marketplace settings and invalidate the cached commission rate.

    Raises:
        ValidationError: 400 if the commission rate is outside [0, 1].
    """
    service = MarketplaceSettingsService()
    try:
        record = await service.update_settings("marketplace", body.to_updates(), updated_by=str(admin.user_id))
    except ValueError as e:
        raise ValidationError(str(e)) from e
    return ApiResponse(message="Settings updated", data=MarketplaceSettingsResponse(**record))


@router.get(
    "/payment-preferences",
    response_model=ApiResponse[PaymentPreferencesResponse],
    summary="Get admin payment preferences",
)
async def get_admin_preferences(admin: AdminUser) -> ApiResponse[PaymentPreferencesResponse]:
    """Return the calling admin's preferences, creating the row if missing."""
    service = PaymentPreferencesService()
    preferences = await service.get_or_create("admin", str(admin.user_id))
    return ApiResponse(data=PaymentPreferencesResponse(**preferences))


@router.put(
    "/payment-preferences",
    response_model=ApiResponse[PaymentPreferencesResponse],
    summary="Update admin payment preferences",
)
async def update_admin_preferences(
    body: PaymentPreferencesUpdate,
    admin: AdminUser,
) -> ApiResponse[PaymentPreferencesResponse]:
    service = PaymentPreferencesService()
    try:
        preferences = await service.update_preferences("admin", str(admin.user_id), body.to_updates())
    except ValueError as e:
        raise ValidationError(str(e)) from e
    return ApiResponse(message="Payment preferences updated", data=PaymentPreferencesResponse(**preferences))
