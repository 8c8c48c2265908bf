"""
Payment Gateway - Translates provider exchanges into PaymentEvents.

Both confirmation paths (client verify poll, provider webhook) are funnelled
through normalize_payment so that the same transaction always produces the
same PaymentEvent.
"""

from uuid import UUID

from structlog import get_logger

from app.exceptions import EmailNotVerifiedError, PaymentMetadataError
from app.models.api import PaymentStatus
from app.models.domain import CheckoutSession, PaymentEvent, UserAccount
from app.observability.metrics import metrics
from app.services.payment_provider import PaymentProvider, TransactionMetadata, WebhookEvent
from app.services.plan_catalog import PlanCatalog

logger = get_logger(__name__)

PROVIDER_SUCCESS_STATUS = "success"
CHARGE_SUCCESS_EVENT = "charge.success"


def normalize_payment(
    reference: str, provider_status: str, metadata: TransactionMetadata
) -> PaymentEvent:
    """
    Build the PaymentEvent for a provider transaction.

    Raises:
        PaymentMetadataError: If the metadata does not name a valid account
    """
    if not metadata.user_id:
        raise PaymentMetadataError(reference, "user_id")
    try:
        identity = UUID(metadata.user_id)
    except ValueError as exc:
        raise PaymentMetadataError(reference, "user_id") from exc

    status = (
        PaymentStatus.SUCCEEDED
        if provider_status.lower() == PROVIDER_SUCCESS_STATUS
        else PaymentStatus.FAILED
    )
    return PaymentEvent(
        reference=reference,
        identity=identity,
        plan=metadata.plan,
        status=status,
        discount_code=metadata.discount_code,
    )


class PaymentGateway:
    """Boundary between the payment provider and the subscription state machine."""

    def __init__(
        self,
        provider: PaymentProvider,
        catalog: PlanCatalog,
        callback_url: str,
        require_verified_email: bool = True,
    ) -> None:
        self.provider = provider
        self.catalog = catalog
        self.callback_url = callback_url
        self.require_verified_email = require_verified_email

    async def initialize(
        self,
        account: UserAccount,
        plan_id: str | None,
        discount_code: str | None = None,
    ) -> CheckoutSession:
        """
        Start a checkout for a plan.

        Unknown plan IDs are priced as the default plan, and unknown discount
        codes are ignored.

        Raises:
            EmailNotVerifiedError: If email verification is required and missing
            PaymentProviderError: If the provider call fails
        """
        if self.require_verified_email and not account.email_verified:
            raise EmailNotVerifiedError(account.email)

        quote = self.catalog.quote(plan_id, discount_code)
        metadata = TransactionMetadata(
            user_id=str(account.account_id),
            plan=quote.plan.plan_id,
            duration_days=quote.plan.duration_days,
            discount_code=quote.discount_code,
            customer_name=account.full_name,
            plan_name=quote.plan.display_name,
        )

        init = await self.provider.initialize_transaction(
            email=account.email,
            amount_minor=quote.amount_minor,
            callback_url=self.callback_url,
            metadata=metadata,
        )
        metrics.record_payment_initialized(quote.plan.plan_id, quote.amount_minor)

        logger.info(
            "checkout_created",
            account_id=str(account.account_id),
            reference=init.reference,
            plan=quote.plan.plan_id,
            amount_minor=quote.amount_minor,
            percent_off=quote.percent_off,
        )
        return CheckoutSession(
            authorization_url=init.authorization_url,
            reference=init.reference,
            plan_id=quote.plan.plan_id,
            amount_minor=quote.amount_minor,
            discount_code=quote.discount_code,
        )

    async def confirm(self, reference: str) -> PaymentEvent:
        """
        Ask the provider about a transaction and normalize the answer.

        Raises:
            PaymentProviderError: If the provider call fails
            PaymentMetadataError: If the transaction was not created by us
        """
        verification = await self.provider.verify_transaction(reference)
        return normalize_payment(
            verification.reference, verification.status, verification.metadata
        )

    def event_from_webhook(self, webhook: WebhookEvent) -> PaymentEvent | None:
        """
        Normalize a verified webhook; None for event types we do not act on.

        Raises:
            PaymentMetadataError: If a charge event lacks our metadata
        """
        if webhook.event_type != CHARGE_SUCCESS_EVENT:
            logger.info(
                "webhook_event_ignored",
                event_type=webhook.event_type,
                reference=webhook.reference,
            )
            return None
        return normalize_payment(webhook.reference, webhook.status, webhook.metadata)
