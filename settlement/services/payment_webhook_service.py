"""Payment provider webhook verification and processing."""

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Mapping

from settlement.core.config import get_settings
from settlement.core.exceptions import (
    AuthenticityError,
    DuplicateEventError,
    InfrastructureError,
    MalformedEventError,
    ProviderVerificationError,
    VerificationMismatchError,
)
from settlement.core.supabase import get_supabase_client
from settlement.services.order_status_service import ORDERS_TABLE, OrderStatusService
from settlement.services.payment_providers import (
    FlutterwaveClient,
    PaystackClient,
    ProviderVerification,
)
from settlement.services.webhook_ledger import WebhookLedger

logger = logging.getLogger(__name__)

PAYSTACK_SUCCESS_EVENT = "charge.success"


@dataclass
class WebhookOutcome:
    """Result of handling one webhook delivery."""

    duplicate: bool = False
    applied: bool = False
    ignored: bool = False
    rejected: bool = False
    order_found: bool | None = None

    def to_response(self) -> dict[str, Any]:
        """Provider-facing acknowledgement body."""
        body: dict[str, Any] = {"success": True, "received": True}
        if self.duplicate:
            body["duplicate"] = True
        return body


def verify_flutterwave_signature(raw_body: bytes, headers: Mapping[str, str], secret: str) -> None:
    """Check a Flutterwave webhook against the shared secret hash.

    Accepts an exact ``verif-hash`` match, or an HMAC-SHA256 hex digest of
    the raw body in ``flutterwave-signature``.

    Raises:
        AuthenticityError: If the secret is unset or neither header matches.
    """
    if not secret:
        raise AuthenticityError("Flutterwave webhook secret not configured")

    verif_hash = headers.get("verif-hash")
    if verif_hash and hmac.compare_digest(verif_hash.encode(), secret.encode()):
        return

    signature = headers.get("flutterwave-signature")
    if signature:
        expected = hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()
        if hmac.compare_digest(signature.strip().lower().encode(), expected.encode()):
            return

    raise AuthenticityError("Invalid Flutterwave webhook signature")


def verify_paystack_signature(raw_body: bytes, headers: Mapping[str, str], secret: str) -> None:
    """Check ``x-paystack-signature`` (HMAC-SHA512 hex of the raw body).

    Raises:
        AuthenticityError: If the secret is unset or the signature mismatches.
    """
    if not secret:
        raise AuthenticityError("Paystack webhook secret not configured")

    signature = headers.get("x-paystack-signature")
    if not signature:
        raise AuthenticityError("Missing Paystack signature")

    expected = hmac.new(secret.encode(), raw_body, hashlib.sha512).hexdigest()
    if not hmac.compare_digest(signature.strip().lower().encode(), expected.encode()):
        raise AuthenticityError("Invalid Paystack webhook signature")


def parse_event_body(raw_body: bytes) -> dict[str, Any]:
    """Decode a webhook body.

    Raises:
        MalformedEventError: If the body is not a JSON object.
    """
    try:
        body = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedEventError("Webhook body is not valid JSON") from e
    if not isinstance(body, dict):
        raise MalformedEventError("Webhook body must be a JSON object")
    return body


def _as_id(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


class PaymentWebhookService:
    """Applies verified provider payment confirmations to orders.

    Order of operations per delivery: signature, identifiers, ledger claim,
    provider re-verification, order update, ledger status.
    """

    def __init__(
        self,
        ledger: WebhookLedger | None = None,
        flutterwave: FlutterwaveClient | None = None,
        paystack: PaystackClient | None = None,
        order_service: OrderStatusService | None = None,
    ) -> None:
        """Initialize webhook service with clients."""
        self.client = get_supabase_client()
        self.settings = get_settings()
        self.ledger = ledger or WebhookLedger()
        self.flutterwave = flutterwave or FlutterwaveClient(self.settings)
        self.paystack = paystack or PaystackClient(self.settings)
        self.order_service = order_service or OrderStatusService()

    async def handle_flutterwave(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookOutcome:
        """Process a Flutterwave charge webhook.

        Raises:
            AuthenticityError: Bad or missing signature.
            MalformedEventError: Body unparsable or identifiers missing.
            ProviderVerificationError: Verification call failed.
            InfrastructureError: Ledger or order storage failure.
        """
        verify_flutterwave_signature(raw_body, headers, self.settings.flw_secret_hash)
        body = parse_event_body(raw_body)
        data = body.get("data") if isinstance(body.get("data"), dict) else {}

        transaction_id = _as_id(body.get("id")) or _as_id(data.get("id"))
        tx_ref = _as_id(body.get("tx_ref")) or _as_id(data.get("tx_ref"))
        if not transaction_id or not tx_ref:
            raise MalformedEventError("Missing transaction id or tx_ref")

        return await self._process(
            source="flutterwave",
            event_id=transaction_id,
            reference=tx_ref,
            meta={"event": body.get("event") or body.get("event.type")},
            verify=lambda: self.flutterwave.verify_transaction(transaction_id),
            target_status="completed",
            legacy_lookup=True,
        )

    async def handle_paystack(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookOutcome:
        """Process a Paystack webhook. Only charge.success is acted on.

        Raises:
            AuthenticityError: Bad or missing signature.
            MalformedEventError: Body unparsable or identifiers missing.
            ProviderVerificationError: Verification call failed.
            InfrastructureError: Ledger or order storage failure.
        """
        verify_paystack_signature(raw_body, headers, self.settings.paystack_signing_secret)
        body = parse_event_body(raw_body)

        event = body.get("event")
        if event != PAYSTACK_SUCCESS_EVENT:
            logger.info("Ignoring Paystack event %s", event)
            return WebhookOutcome(ignored=True)

        data = body.get("data") if isinstance(body.get("data"), dict) else {}
        transaction_id = _as_id(data.get("id"))
        reference = _as_id(data.get("reference"))
        if not transaction_id or not reference:
            raise MalformedEventError("Missing transaction id or reference")

        return await self._process(
            source="paystack",
            event_id=transaction_id,
            reference=reference,
            meta={"event": event},
            verify=lambda: self.paystack.verify_transaction(reference),
            target_status="paid",
            legacy_lookup=False,
        )

    async def _process(
        self,
        source: str,
        event_id: str,
        reference: str,
        meta: dict[str, Any],
        verify: Callable[[], Awaitable[ProviderVerification]],
        target_status: str,
        legacy_lookup: bool,
    ) -> WebhookOutcome:
        try:
            await self._claim_event(source, event_id, reference, meta)
            await self._verify_event(source, event_id, reference, meta, verify)
        except DuplicateEventError as e:
            logger.info(e.message, extra={"tx_ref": reference})
            return WebhookOutcome(duplicate=True)
        except VerificationMismatchError as e:
            logger.warning(e.message, extra={"tx_ref": reference, **e.details})
            await self.ledger.mark_status(
                source,
                event_id,
                "rejected",
                error=e.error_type,
                meta={**meta, **e.details},
            )
            return WebhookOutcome(rejected=True)

        try:
            order = await self._apply_payment(source, event_id, reference, target_status, legacy_lookup)
        except Exception as e:
            await self.ledger.mark_status(source, event_id, "failed", error=str(e), meta=meta)
            if isinstance(e, InfrastructureError):
                raise
            raise InfrastructureError("Failed to apply payment to order") from e

        if order is None:
            logger.warning("No order found for %s tx_ref %s", source, reference)
            await self.ledger.mark_status(source, event_id, "applied", meta={**meta, "order_found": False})
            return WebhookOutcome(applied=False, order_found=False)

        await self.ledger.mark_status(
            source,
            event_id,
            "applied",
            meta={**meta, "order_found": True, "order_id": str(order["id"])},
        )
        return WebhookOutcome(applied=True, order_found=True)

    async def _claim_event(self, source: str, event_id: str, reference: str, meta: dict[str, Any]) -> None:
        """Claim the ledger entry for an event.

        Raises:
            DuplicateEventError: If the event is applied, rejected or being
                handled by another delivery.
        """
        claim = await self.ledger.record_if_new(source, event_id, tx_ref=reference, meta=meta)
        if not claim.accepted:
            raise DuplicateEventError(
                f"Duplicate {source} webhook {event_id} ({claim.reason})",
                details={"reason": claim.reason},
            )

    async def _verify_event(
        self,
        source: str,
        event_id: str,
        reference: str,
        meta: dict[str, Any],
        verify: Callable[[], Awaitable[ProviderVerification]],
    ) -> ProviderVerification:
        """Re-verify a claimed event with the provider.

        Raises:
            ProviderVerificationError: Verification call failed. The ledger
                entry is marked failed so a redelivery can retry it.
            VerificationMismatchError: Provider disagrees with the webhook.
        """
        try:
            verification = await verify()
        except ProviderVerificationError as e:
            await self.ledger.mark_status(source, event_id, "failed", error=e.message, meta=meta)
            raise

        if not verification.matches(reference) or (
            verification.transaction_id and verification.transaction_id != event_id
        ):
            raise VerificationMismatchError(
                f"{source} verification mismatch for {event_id}: provider status={verification.status} "
                f"reference={verification.reference}, webhook reference={reference}",
                details={
                    "provider_status": verification.status,
                    "provider_reference": verification.reference,
                },
            )
        return verification

    async def _find_order(self, reference: str, legacy_lookup: bool) -> dict[str, Any] | None:
        response = (
            self.client.table(ORDERS_TABLE)
            .select("*")
            .eq("tx_ref", reference)
            .limit(1)
            .execute()
        )
        if response.data:
            return response.data[0]

        if legacy_lookup:
            response = (
                self.client.table(ORDERS_TABLE)
                .select("*")
                .eq("payment_details->>tx_ref", reference)
                .limit(1)
                .execute()
            )
            if response.data:
                return response.data[0]
        return None

    async def _apply_payment(
        self,
        source: str,
        event_id: str,
        reference: str,
        target_status: str,
        legacy_lookup: bool,
    ) -> dict[str, Any] | None:
        """Confirm payment on the order matching the reference.

        The update only applies while the order is still pending, so a
        re-applied event never moves an order backwards.
        """
        order = await self._find_order(reference, legacy_lookup)
        if order is None:
            return None

        now = datetime.now(timezone.utc).isoformat()
        response = (
            self.client.table(ORDERS_TABLE)
            .update(
                {
                    "status": target_status,
                    "payment_status": "confirmed",
                    "payment_confirmed_at": now,
                    "transaction_reference": event_id,
                    "updated_at": now,
                }
            )
            .eq("id", order["id"])
            .eq("status", "pending")
            .execute()
        )

        if not response.data:
            logger.info(
                "Order %s already past pending (%s), payment not re-applied",
                order.get("order_number", order["id"]),
                order.get("status"),
            )
            return order

        await self.order_service.add_timeline_event(
            str(order["id"]),
            "payment_confirmed",
            {"provider": source, "transaction_id": event_id, "reference": reference, "status": target_status},
        )
        logger.info(
            "Payment confirmed for order %s via %s",
            order.get("order_number", order["id"]),
            source,
            extra={"order_id": str(order["id"]), "status": target_status},
        )
        return response.data[0]
