"""
Paystack Payment Provider Implementation.

Raw Paystack JSON is parsed into typed models at this boundary; callers never see it.
"""

import hashlib
import hmac
import json
from typing import Any

import httpx
from structlog import get_logger

from app.exceptions import PaymentProviderError, WebhookVerificationError
from app.services.payment_provider import (
    TransactionInit,
    TransactionMetadata,
    TransactionVerification,
    WebhookEvent,
)

logger = get_logger(__name__)


def _parse_metadata(raw: Any) -> TransactionMetadata:
    """Read back the metadata we attached; Paystack may return it as a JSON string."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw else {}
        except json.JSONDecodeError:
            raw = {}
    if not isinstance(raw, dict):
        raw = {}

    try:
        duration_days = int(raw["duration_days"]) if raw.get("duration_days") else None
    except (TypeError, ValueError):
        duration_days = None

    user_id = raw.get("user_id")
    return TransactionMetadata(
        user_id=str(user_id) if user_id else None,
        plan=raw.get("plan") or None,
        duration_days=duration_days,
        discount_code=raw.get("discount_code") or None,
        customer_name=raw.get("customer_name") or None,
        plan_name=raw.get("plan_name") or None,
    )


def _serialize_metadata(metadata: TransactionMetadata) -> dict[str, Any]:
    """Paystack metadata payload, including custom_fields shown on the dashboard."""
    payload: dict[str, Any] = {
        "user_id": metadata.user_id,
        "plan": metadata.plan,
        "duration_days": metadata.duration_days,
        "discount_code": metadata.discount_code,
        "custom_fields": [],
    }
    if metadata.customer_name:
        payload["custom_fields"].append(
            {
                "display_name": "Customer Name",
                "variable_name": "customer_name",
                "value": metadata.customer_name,
            }
        )
    if metadata.plan_name:
        payload["custom_fields"].append(
            {"display_name": "Plan", "variable_name": "plan", "value": metadata.plan_name}
        )
    return payload


class PaystackProvider:
    """
    Paystack payment provider implementation.

    Implements the PaymentProvider protocol for Paystack.
    """

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.paystack.co",
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize Paystack provider.

        Args:
            secret_key: Paystack secret key (also signs webhooks)
            base_url: API base URL
            timeout: Per-request timeout in seconds
            http_client: Optional preconfigured client (tests)
        """
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.secret_key}"}

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Call the Paystack API and unwrap the {status, message, data} envelope."""
        try:
            response = await self.http_client.request(
                method, f"{self.base_url}{path}", headers=self._headers, **kwargs
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "paystack_request_rejected",
                path=path,
                status=exc.response.status_code,
                text=exc.response.text[:500],
            )
            raise PaymentProviderError(
                f"Paystack returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(
                "paystack_request_failed",
                path=path,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise PaymentProviderError(f"Paystack request failed: {exc}") from exc
        except ValueError as exc:
            logger.error("paystack_response_not_json", path=path)
            raise PaymentProviderError("Paystack returned a non-JSON response") from exc

        if not body.get("status") or not isinstance(body.get("data"), dict):
            logger.error("paystack_request_unsuccessful", path=path, message=body.get("message"))
            raise PaymentProviderError(body.get("message") or "Paystack request unsuccessful")

        data: dict[str, Any] = body["data"]
        return data

    async def initialize_transaction(
        self,
        email: str,
        amount_minor: int,
        callback_url: str,
        metadata: TransactionMetadata,
    ) -> TransactionInit:
        """
        Initialize a Paystack transaction.

        Returns:
            Authorization URL to redirect the customer to, and the transaction reference

        Raises:
            PaymentProviderError: If Paystack API call fails
        """
        logger.info(
            "initializing_paystack_transaction",
            amount_minor=amount_minor,
            plan=metadata.plan,
        )

        data = await self._request(
            "POST",
            "/transaction/initialize",
            json={
                "email": email,
                "amount": amount_minor,
                "callback_url": callback_url,
                "metadata": _serialize_metadata(metadata),
            },
        )

        try:
            init = TransactionInit(
                authorization_url=data["authorization_url"],
                reference=data["reference"],
                access_code=data.get("access_code"),
            )
        except KeyError as exc:
            raise PaymentProviderError(f"Paystack response missing {exc}") from exc

        logger.info("paystack_transaction_initialized", reference=init.reference)
        return init

    async def verify_transaction(self, reference: str) -> TransactionVerification:
        """
        Verify a Paystack transaction by reference.

        Raises:
            PaymentProviderError: If Paystack API call fails
        """
        logger.info("verifying_paystack_transaction", reference=reference)

        data = await self._request("GET", f"/transaction/verify/{reference}")

        verification = TransactionVerification(
            reference=data.get("reference") or reference,
            status=str(data.get("status", "")),
            amount_minor=data.get("amount"),
            metadata=_parse_metadata(data.get("metadata")),
        )

        logger.info(
            "paystack_transaction_verified",
            reference=verification.reference,
            status=verification.status,
        )
        return verification

    def _expected_signature(self, payload: bytes) -> str:
        return hmac.new(self.secret_key.encode(), payload, hashlib.sha512).hexdigest()

    async def verify_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """
        Verify and parse a Paystack webhook.

        Args:
            payload: Raw request body
            signature: x-paystack-signature header value (HMAC-SHA512 of body)

        Raises:
            WebhookVerificationError: If signature verification or parsing fails
        """
        if not signature or not hmac.compare_digest(self._expected_signature(payload), signature):
            logger.error("paystack_webhook_bad_signature", signature_present=bool(signature))
            raise WebhookVerificationError("Invalid Paystack webhook signature")

        try:
            body = json.loads(payload)
            data = body.get("data") or {}
            event = WebhookEvent(
                event_type=body["event"],
                reference=data["reference"],
                status=str(data.get("status", "")),
                amount_minor=data.get("amount"),
                metadata=_parse_metadata(data.get("metadata")),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error("paystack_webhook_parsing_failed", error=str(exc))
            raise WebhookVerificationError(f"Failed to parse Paystack webhook: {exc}") from exc

        logger.info(
            "paystack_webhook_verified",
            event_type=event.event_type,
            reference=event.reference,
        )
        return event

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
