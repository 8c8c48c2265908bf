"""
Payment Provider Protocol - Provider-agnostic interface.

NO DICTIONARIES - All data uses strongly typed models.
"""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class TransactionMetadata:
    """
    Metadata embedded in a provider transaction at initialization.

    The provider echoes it back on verify and webhook, which is how a payment
    is tied to an account without relying on the caller's session.
    """

    user_id: str | None
    plan: str | None
    duration_days: int | None = None
    discount_code: str | None = None
    customer_name: str | None = None
    plan_name: str | None = None


@dataclass(frozen=True)
class TransactionInit:
    """Result of initializing a transaction with the provider."""

    authorization_url: str
    reference: str
    access_code: str | None = None


@dataclass(frozen=True)
class TransactionVerification:
    """Provider's view of a transaction, as returned by verify."""

    reference: str
    status: str  # Provider-specific, e.g. "success", "failed", "abandoned"
    amount_minor: int | None
    metadata: TransactionMetadata = field(
        default_factory=lambda: TransactionMetadata(user_id=None, plan=None)
    )


@dataclass(frozen=True)
class WebhookEvent:
    """
    Provider-agnostic webhook event.

    Represents a webhook notification from payment provider.
    """

    event_type: str
    reference: str
    status: str
    amount_minor: int | None
    metadata: TransactionMetadata


class PaymentProvider(Protocol):
    """
    Payment provider protocol.

    Any payment provider (Paystack, Flutterwave, Stripe, etc.) must implement this interface.
    """

    async def initialize_transaction(
        self,
        email: str,
        amount_minor: int,
        callback_url: str,
        metadata: TransactionMetadata,
    ) -> TransactionInit:
        """
        Create a hosted checkout for a one-off charge.

        Raises:
            PaymentProviderError: If the provider call fails
        """
        ...

    async def verify_transaction(self, reference: str) -> TransactionVerification:
        """
        Fetch the current state of a transaction.

        Raises:
            PaymentProviderError: If the provider call fails or the reference is unknown
        """
        ...

    async def verify_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """
        Verify and parse webhook event from provider.

        Raises:
            WebhookVerificationError: If signature verification or parsing fails
        """
        ...
