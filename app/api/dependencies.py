"""
FastAPI Dependencies - Service wiring and bearer authentication.

Process-wide components are created once; stores and services are built per request over its database session.
"""

from datetime import timedelta

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.config import Settings, get_settings
from app.db.session import get_db
from app.exceptions import AuthenticationError
from app.models.domain import SessionClaims
from app.services.accounts import AccountService
from app.services.credential_store import CredentialStore, SQLAlchemyCredentialStore
from app.services.notification import LoggingEmailSender, NotificationSender, ResendEmailSender
from app.services.otp import OTPVerifier
from app.services.password_hasher import Argon2CredentialHasher, CredentialHasher
from app.services.payment_gateway import PaymentGateway
from app.services.payment_provider import PaymentProvider
from app.services.paystack_provider import PaystackProvider
from app.services.plan_catalog import PlanCatalog
from app.services.session_tokens import SessionTokenIssuer
from app.services.subscription import SubscriptionService

logger = get_logger(__name__)

# Bearer token scheme; missing headers are reported by get_current_claims
bearer_scheme = HTTPBearer(auto_error=False)

# Process-wide clients, created on first use and closed at shutdown
_payment_provider: PaystackProvider | None = None
_notification_sender: NotificationSender | None = None
_catalog: PlanCatalog | None = None
_hasher: Argon2CredentialHasher | None = None


# ============================================================================
# Process-wide components
# ============================================================================


def get_catalog() -> PlanCatalog:
    """Plan catalog with discount codes from settings."""
    global _catalog
    if _catalog is None:
        settings = get_settings()
        _catalog = PlanCatalog(
            discount_codes=settings.active_discount_codes,
            default_plan_id=settings.default_plan_id,
        )
    return _catalog


def get_hasher() -> CredentialHasher:
    global _hasher
    if _hasher is None:
        _hasher = Argon2CredentialHasher()
    return _hasher


def get_token_issuer(settings: Settings = Depends(get_settings)) -> SessionTokenIssuer:
    return SessionTokenIssuer(
        secret=settings.jwt_secret,
        default_ttl=timedelta(days=settings.jwt_expire_days),
    )


def get_notification_sender() -> NotificationSender:
    """Resend when an API key is configured, otherwise log-only."""
    global _notification_sender
    if _notification_sender is None:
        settings = get_settings()
        if settings.resend_api_key:
            _notification_sender = ResendEmailSender(
                api_key=settings.resend_api_key,
                from_address=settings.email_from,
                base_url=settings.resend_base_url,
                timeout=settings.http_timeout_seconds,
            )
        else:
            logger.warning("resend_api_key_missing_emails_will_be_logged")
            _notification_sender = LoggingEmailSender()
    return _notification_sender


def get_payment_provider() -> PaymentProvider:
    global _payment_provider
    if _payment_provider is None:
        settings = get_settings()
        if not settings.paystack_secret_key:
            logger.warning("paystack_secret_key_missing")
        _payment_provider = PaystackProvider(
            secret_key=settings.paystack_secret_key,
            base_url=settings.paystack_base_url,
            timeout=settings.http_timeout_seconds,
        )
    return _payment_provider


async def close_http_clients() -> None:
    """Close outbound HTTP clients (for graceful shutdown)."""
    global _payment_provider, _notification_sender

    if _payment_provider is not None:
        await _payment_provider.close()
        _payment_provider = None
    if isinstance(_notification_sender, ResendEmailSender):
        await _notification_sender.close()
    _notification_sender = None


# ============================================================================
# Request-scoped services
# ============================================================================


def get_credential_store(db: AsyncSession = Depends(get_db)) -> CredentialStore:
    return SQLAlchemyCredentialStore(db)


def get_subscription_service(
    store: CredentialStore = Depends(get_credential_store),
    catalog: PlanCatalog = Depends(get_catalog),
) -> SubscriptionService:
    return SubscriptionService(store, catalog)


def get_otp_verifier(
    store: CredentialStore = Depends(get_credential_store),
    settings: Settings = Depends(get_settings),
) -> OTPVerifier:
    return OTPVerifier(store, ttl=timedelta(minutes=settings.otp_ttl_minutes))


def get_account_service(
    store: CredentialStore = Depends(get_credential_store),
    hasher: CredentialHasher = Depends(get_hasher),
    tokens: SessionTokenIssuer = Depends(get_token_issuer),
    sender: NotificationSender = Depends(get_notification_sender),
    otp: OTPVerifier = Depends(get_otp_verifier),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
    settings: Settings = Depends(get_settings),
) -> AccountService:
    return AccountService(
        store=store,
        hasher=hasher,
        tokens=tokens,
        sender=sender,
        otp=otp,
        subscriptions=subscriptions,
        otp_enabled=settings.otp_enabled,
        password_min_length=settings.password_min_length,
    )


def get_payment_gateway(
    provider: PaymentProvider = Depends(get_payment_provider),
    catalog: PlanCatalog = Depends(get_catalog),
    settings: Settings = Depends(get_settings),
) -> PaymentGateway:
    return PaymentGateway(
        provider=provider,
        catalog=catalog,
        callback_url=settings.payment_callback_url,
        require_verified_email=settings.otp_enabled,
    )


# ============================================================================
# Bearer Authentication
# ============================================================================


async def get_current_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    tokens: SessionTokenIssuer = Depends(get_token_issuer),
) -> SessionClaims:
    """
    FastAPI dependency that authenticates the caller from a session token.

    Accepts: Authorization: Bearer {session_token}

    Returns:
        SessionClaims for the signed-in account

    Raises:
        HTTPException 401 if the token is missing, expired or invalid
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return tokens.verify(credentials.credentials)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
