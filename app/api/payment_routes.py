"""
Payment Routes - Plans, checkout, confirmation and provider webhook.

NO DICTIONARIES - All requests/responses use Pydantic models.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from structlog import get_logger

from app.api.auth_routes import VERIFY_EMAIL_FIRST
from app.api.dependencies import (
    get_catalog,
    get_credential_store,
    get_current_claims,
    get_payment_gateway,
    get_payment_provider,
    get_subscription_service,
)
from app.exceptions import (
    EmailNotVerifiedError,
    PaymentMetadataError,
    PaymentProviderError,
    WebhookVerificationError,
)
from app.models.api import (
    InitializePaymentRequest,
    InitializePaymentResponse,
    PlanListResponse,
    PlanResponse,
    SubscriptionInfo,
    SubscriptionOutcome,
    VerifyPaymentResponse,
    WebhookResponse,
)
from app.models.domain import SessionClaims, SubscriptionResult
from app.services.credential_store import CredentialStore
from app.services.payment_gateway import PaymentGateway
from app.services.payment_provider import PaymentProvider
from app.services.plan_catalog import PlanCatalog
from app.services.subscription import SubscriptionService

logger = get_logger(__name__)

router = APIRouter(tags=["payments"])

SIGNATURE_HEADER = "x-paystack-signature"


def _subscription_info(result: SubscriptionResult) -> SubscriptionInfo:
    return SubscriptionInfo(
        active=result.is_active,
        plan=result.plan_id,
        expires_at=result.expires_at.isoformat() if result.expires_at else None,
    )


@router.get("/plans", response_model=PlanListResponse)
async def list_plans(catalog: PlanCatalog = Depends(get_catalog)) -> PlanListResponse:
    """Purchasable plans, cheapest first."""
    return PlanListResponse(
        plans=[
            PlanResponse(
                plan_id=plan.plan_id,
                display_name=plan.display_name,
                amount_minor=plan.base_amount_minor,
                duration_days=plan.duration_days,
            )
            for plan in catalog.list_plans()
        ]
    )


@router.post("/payment/initialize", response_model=InitializePaymentResponse)
async def initialize_payment(
    request: InitializePaymentRequest,
    claims: SessionClaims = Depends(get_current_claims),
    store: CredentialStore = Depends(get_credential_store),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> InitializePaymentResponse:
    """
    Start a checkout for the signed-in user.

    Unknown plans are priced as the default plan; unknown discount codes are
    ignored.
    """
    account = await store.find_by_id(claims.account_id)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    try:
        checkout = await gateway.initialize(account, request.plan, request.discount_code)
    except EmailNotVerifiedError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": VERIFY_EMAIL_FIRST, "needs_verification": True},
        ) from exc
    except PaymentProviderError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to initialize payment",
        ) from exc

    return InitializePaymentResponse(
        authorization_url=checkout.authorization_url,
        reference=checkout.reference,
        plan=checkout.plan_id,
        amount_minor=checkout.amount_minor,
        discount_code=checkout.discount_code,
    )


@router.get("/payment/verify/{reference}", response_model=VerifyPaymentResponse)
async def verify_payment(
    reference: str,
    claims: SessionClaims = Depends(get_current_claims),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
) -> VerifyPaymentResponse:
    """
    Confirm a payment after the checkout redirect.

    The account credited is the one named in the transaction metadata, which
    must match the caller.
    """
    try:
        event = await gateway.confirm(reference)
    except PaymentProviderError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to verify payment",
        ) from exc
    except PaymentMetadataError as exc:
        logger.warning("payment_verify_missing_metadata", reference=reference, field=exc.field)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Transaction is not linked to an account",
        ) from exc

    if event.identity != claims.account_id:
        logger.warning(
            "payment_verify_identity_mismatch",
            reference=reference,
            caller=str(claims.account_id),
            owner=str(event.identity),
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Payment belongs to a different account",
        )

    result = await subscriptions.apply(event, source="verify")

    if result.outcome == SubscriptionOutcome.PAYMENT_NOT_SUCCESSFUL:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Payment not successful", "status": event.status.value},
        )
    if result.outcome == SubscriptionOutcome.UNKNOWN_ACCOUNT:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    already_processed = result.outcome == SubscriptionOutcome.ALREADY_APPLIED
    return VerifyPaymentResponse(
        message="Payment already processed"
        if already_processed
        else "Payment verified! Subscription activated.",
        already_processed=already_processed,
        subscription=_subscription_info(result),
    )


@router.post("/payment/webhook", response_model=WebhookResponse)
async def paystack_webhook(
    request: Request,
    provider: PaymentProvider = Depends(get_payment_provider),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
) -> WebhookResponse:
    """
    Handle Paystack webhook events.

    Unsigned or tampered deliveries are rejected. Verified events we do not act
    on are acknowledged so the provider stops retrying.
    """
    payload = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER, "")

    try:
        webhook = await provider.verify_webhook(payload, signature)
    except WebhookVerificationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature",
        ) from exc

    try:
        event = gateway.event_from_webhook(webhook)
    except PaymentMetadataError as exc:
        logger.warning(
            "webhook_missing_metadata", reference=webhook.reference, field=exc.field
        )
        return WebhookResponse(status="ignored")

    if event is None:
        return WebhookResponse(status="ignored")

    result = await subscriptions.apply(event, source="webhook")
    return WebhookResponse(status="ok", outcome=result.outcome)
