"""Transaction verification clients for Flutterwave and Paystack."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from settlement.core.config import Settings, get_settings
from settlement.core.exceptions import ProviderVerificationError

logger = logging.getLogger(__name__)

MIN_WAIT_SECONDS = 0.5
MAX_WAIT_SECONDS = 4


@dataclass(frozen=True)
class ProviderVerification:
    """What the provider's own record says about a transaction."""

    provider: str
    transaction_id: str
    status: str | None
    reference: str | None
    successful: bool
    amount: Any = None
    currency: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    def matches(self, reference: str) -> bool:
        """True if the provider reports success for the given reference."""
        return self.successful and self.reference == reference


class ProviderClient:
    """Shared HTTP plumbing for provider verification calls.

    Transport failures and timeouts are retried with backoff, then surface
    as ProviderVerificationError. They are never read as success.
    """

    provider: str = ""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client

    def _base_url(self) -> str:
        raise NotImplementedError

    def _secret_key(self) -> str:
        raise NotImplementedError

    async def _get_json(self, path: str) -> dict[str, Any]:
        secret = self._secret_key()
        if not secret:
            raise ProviderVerificationError(f"{self.provider} secret key not configured")

        url = f"{self._base_url().rstrip('/')}{path}"
        headers = {
            "Authorization": f"Bearer {secret}",
            "Content-Type": "application/json",
        }
        timeout = self.settings.provider_verify_timeout_seconds
        start_time = time.perf_counter()

        async def _execute(client_obj: httpx.AsyncClient) -> httpx.Response:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                stop=stop_after_attempt(self.settings.provider_verify_max_retries + 1),
                wait=wait_exponential(multiplier=MIN_WAIT_SECONDS, min=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS),
                reraise=True,
            ):
                with attempt:
                    return await client_obj.get(url, headers=headers, timeout=timeout)
            raise ProviderVerificationError(f"{self.provider} verification was not attempted")

        try:
            if self._client is not None:
                response = await _execute(self._client)
            else:
                async with httpx.AsyncClient() as client_obj:
                    response = await _execute(client_obj)
        except httpx.TimeoutException as e:
            logger.error("%s verification timed out: %s", self.provider, url)
            raise ProviderVerificationError(f"{self.provider} verification timed out") from e
        except httpx.TransportError as e:
            logger.error("%s verification transport error: %s", self.provider, str(e))
            raise ProviderVerificationError(f"{self.provider} verification request failed") from e
        finally:
            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.debug("%s GET %s took %.2fms", self.provider, path, latency_ms)

        if response.status_code >= 400:
            logger.warning(
                "%s verification HTTP error",
                self.provider,
                extra={"status_code": response.status_code, "path": path},
            )
            raise ProviderVerificationError(
                f"{self.provider} verification failed with HTTP {response.status_code}",
                details={"status_code": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderVerificationError(f"{self.provider} returned a non-JSON response") from e

        if not isinstance(payload, dict):
            raise ProviderVerificationError(f"{self.provider} returned an unexpected response")
        return payload


class FlutterwaveClient(ProviderClient):
    """Flutterwave v3 transaction verification."""

    provider = "flutterwave"

    def _base_url(self) -> str:
        return self.settings.flw_api_base_url

    def _secret_key(self) -> str:
        return self.settings.flw_secret_key

    async def verify_transaction(self, transaction_id: str) -> ProviderVerification:
        """Fetch a transaction by its Flutterwave id.

        Raises:
            ProviderVerificationError: On timeout, transport or HTTP failure.
        """
        payload = await self._get_json(f"/transactions/{transaction_id}/verify")
        data = payload.get("data") or {}
        status = data.get("status")
        return ProviderVerification(
            provider=self.provider,
            transaction_id=str(transaction_id),
            status=status,
            reference=data.get("tx_ref"),
            successful=payload.get("status") == "success" and status == "successful",
            amount=data.get("amount"),
            currency=data.get("currency"),
            raw=data,
        )


class PaystackClient(ProviderClient):
    """Paystack transaction verification."""

    provider = "paystack"

    def _base_url(self) -> str:
        return self.settings.paystack_api_base_url

    def _secret_key(self) -> str:
        return self.settings.paystack_secret_key

    async def verify_transaction(self, reference: str) -> ProviderVerification:
        """Fetch a transaction by its merchant reference.

        Raises:
            ProviderVerificationError: On timeout, transport or HTTP failure.
        """
        payload = await self._get_json(f"/transaction/verify/{reference}")
        data = payload.get("data") or {}
        status = data.get("status")
        return ProviderVerification(
            provider=self.provider,
            transaction_id=str(data.get("id") or ""),
            status=status,
            reference=data.get("reference"),
            successful=bool(payload.get("status")) and status == "success",
            amount=data.get("amount"),
            currency=data.get("currency"),
            raw=data,
        )
