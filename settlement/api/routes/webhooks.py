"""Payment provider webhook routes.

These endpoints are unauthenticated; each delivery is authenticated by its
provider signature instead.
"""

import logging
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from settlement.core.exceptions import (
    AuthenticityError,
    InfrastructureError,
    MalformedEventError,
    ProviderVerificationError,
)
from settlement.services.payment_webhook_service import PaymentWebhookService, WebhookOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


async def _handle(
    provider: str,
    handler: Callable[[bytes, Any], Awaitable[WebhookOutcome]],
    request: Request,
) -> Any:
    # Raw bytes are needed for signature verification
    payload = await request.body()
    logger.debug("Received %s webhook (%d bytes)", provider, len(payload))

    try:
        outcome = await handler(payload, request.headers)
    except (AuthenticityError, MalformedEventError, ProviderVerificationError) as e:
        logger.warning("Rejected %s webhook: %s", provider, e.message)
        return _failure(status.HTTP_400_BAD_REQUEST, e.message)
    except InfrastructureError as e:
        logger.error("Failed to process %s webhook: %s", provider, e.message)
        return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, e.message)

    return outcome.to_response()


@router.post(
    "/flutterwave",
    status_code=status.HTTP_200_OK,
    summary="Handle Flutterwave webhooks",
    description="Receives Flutterwave charge events. Requires a valid verif-hash or flutterwave-signature header.",
)
async def flutterwave_webhook(request: Request) -> Any:
    """Handle Flutterwave webhook events.

    Duplicates of an already-applied event are acknowledged with
    duplicate=true and change nothing.
    """
    service = PaymentWebhookService()
    return await _handle("flutterwave", service.handle_flutterwave, request)


@router.post(
    "/paystack",
    status_code=status.HTTP_200_OK,
    summary="Handle Paystack webhooks",
    description="Receives Paystack events. Only charge.success is acted on. Requires x-paystack-signature.",
)
async def paystack_webhook(request: Request) -> Any:
    """Handle Paystack webhook events."""
    service = PaymentWebhookService()
    return await _handle("paystack", service.handle_paystack, request)
