"""
Account Service - Registration, email verification, login and profile reads.
"""

import re
from datetime import timedelta
from uuid import UUID

from structlog import get_logger

from app.exceptions import (
    AccountNotFoundError,
    AuthenticationError,
    EmailNotVerifiedError,
    InvalidInputError,
    MZoneError,
    NotificationDeliveryError,
)
from app.models.domain import (
    AuthSession,
    NewAccount,
    Registration,
    SessionClaims,
    UserAccount,
)
from app.observability.metrics import metrics
from app.services import email_templates
from app.services.credential_store import CredentialStore
from app.services.notification import NotificationSender
from app.services.otp import OTPVerifier
from app.services.password_hasher import CredentialHasher
from app.services.session_tokens import SessionTokenIssuer
from app.services.subscription import SubscriptionService

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
INVALID_CREDENTIALS = "Invalid email or password"


def normalize_email(email: str) -> str:
    """Emails are stored and compared lowercased."""
    return email.strip().lower()


def validate_email(email: str) -> None:
    """
    Raises:
        InvalidInputError: If the address is not of the form local@domain.tld
    """
    if not EMAIL_PATTERN.match(email):
        raise InvalidInputError("Invalid email format")


def validate_password(password: str, min_length: int = 10) -> None:
    """
    Passwords must be long enough and mix letters with digits.

    Raises:
        InvalidInputError: With a message naming the first rule broken
    """
    if len(password) < min_length:
        raise InvalidInputError(f"Password must be at least {min_length} characters")
    if not re.search(r"[a-zA-Z]", password):
        raise InvalidInputError("Password must contain letters")
    if not re.search(r"[0-9]", password):
        raise InvalidInputError("Password must contain numbers")


class AccountService:
    """
    Account lifecycle.

    With email verification disabled, accounts are created verified and a
    session token is returned straight from registration.
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: CredentialHasher,
        tokens: SessionTokenIssuer,
        sender: NotificationSender,
        otp: OTPVerifier,
        subscriptions: SubscriptionService,
        otp_enabled: bool = True,
        password_min_length: int = 10,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.sender = sender
        self.otp = otp
        self.subscriptions = subscriptions
        self.otp_enabled = otp_enabled
        self.password_min_length = password_min_length

    @property
    def otp_ttl_minutes(self) -> int:
        return int(self.otp.ttl / timedelta(minutes=1))

    async def register(self, email: str, password: str, full_name: str) -> Registration:
        """
        Create an account.

        Raises:
            InvalidInputError: Missing or malformed input
            EmailConflictError: Email already registered (any case)
        """
        email = normalize_email(email)
        full_name = full_name.strip()
        if not email or not password or not full_name:
            raise InvalidInputError("Email, password, and full name are required")
        validate_email(email)
        validate_password(password, self.password_min_length)

        password_hash = self.hasher.hash(password)

        if self.otp_enabled:
            challenge = self.otp.new_challenge()
            account = await self.store.insert(
                NewAccount(
                    email=email,
                    full_name=full_name,
                    password_hash=password_hash,
                    email_verified=False,
                    otp_code=challenge.code,
                    otp_expires_at=challenge.expires_at,
                )
            )
            metrics.record_registration(verification_required=True)
            logger.info("account_registered", account_id=str(account.account_id), otp=True)

            await self._notify(
                account.email,
                email_templates.VERIFICATION_SUBJECT,
                email_templates.verification_email(
                    account.full_name, challenge.code, self.otp_ttl_minutes
                ),
            )
            return Registration(account=account, session=None)

        account = await self.store.insert(
            NewAccount(
                email=email,
                full_name=full_name,
                password_hash=password_hash,
                email_verified=True,
            )
        )
        metrics.record_registration(verification_required=False)
        logger.info("account_registered", account_id=str(account.account_id), otp=False)
        return Registration(account=account, session=self._session(account))

    async def verify_code(self, email: str, code: str) -> AuthSession:
        """
        Confirm email ownership and sign the user in.

        Raises:
            InvalidInputError: Missing email or code
            AccountNotFoundError: Unknown email
            OTPAlreadyVerifiedError, OTPExpiredError, OTPMismatchError
        """
        if not email or not code:
            raise InvalidInputError("Email and OTP are required")

        account = await self._find_by_email(email)
        try:
            verified = await self.otp.check(account.account_id, code)
        except MZoneError as exc:
            metrics.record_otp_check(type(exc).__name__)
            raise
        metrics.record_otp_check("verified")
        return self._session(verified)

    async def resend_code(self, email: str) -> None:
        """
        Issue a fresh code (invalidating the old one) and email it.

        Raises:
            InvalidInputError: Missing email
            AccountNotFoundError: Unknown email
            OTPAlreadyVerifiedError: Nothing left to verify
        """
        if not email:
            raise InvalidInputError("Email is required")

        account = await self._find_by_email(email)
        challenge = await self.otp.reissue(account.account_id)
        await self._notify(
            account.email,
            email_templates.RESEND_SUBJECT,
            email_templates.resend_email(challenge.code, self.otp_ttl_minutes),
        )

    async def login(self, email: str, password: str) -> AuthSession:
        """
        Authenticate with email and password.

        Raises:
            InvalidInputError: Missing email or password
            AuthenticationError: Unknown email or wrong password
            EmailNotVerifiedError: Verification enabled and still pending
        """
        if not email or not password:
            raise InvalidInputError("Email and password are required")

        account = await self.store.find_by_email(normalize_email(email))
        if account is None or not self.hasher.verify(password, account.password_hash):
            metrics.record_login(success=False)
            logger.info("login_failed", reason="invalid_credentials")
            raise AuthenticationError(INVALID_CREDENTIALS)

        if self.otp_enabled and not account.email_verified:
            metrics.record_login(success=False)
            logger.info("login_blocked_unverified", account_id=str(account.account_id))
            raise EmailNotVerifiedError(account.email)

        account = await self.subscriptions.refresh_entitlement(account)
        metrics.record_login(success=True)
        logger.info("login_succeeded", account_id=str(account.account_id))
        return self._session(account)

    async def get_profile(self, account_id: UUID) -> UserAccount:
        """
        Read an account for display, lapsing an expired entitlement first.

        Raises:
            AccountNotFoundError: Unknown account
        """
        account = await self.store.find_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return await self.subscriptions.refresh_entitlement(account)

    async def _find_by_email(self, email: str) -> UserAccount:
        account = await self.store.find_by_email(normalize_email(email))
        if account is None:
            raise AccountNotFoundError(normalize_email(email))
        return account

    def _session(self, account: UserAccount) -> AuthSession:
        token = self.tokens.sign(
            SessionClaims(
                account_id=account.account_id,
                email=account.email,
                full_name=account.full_name,
            )
        )
        return AuthSession(token=token, account=account)

    async def _notify(self, to_address: str, subject: str, html_body: str) -> None:
        """Send an email; delivery failures are logged and never fail the request."""
        try:
            await self.sender.send(to_address, subject, html_body)
        except NotificationDeliveryError as exc:
            metrics.record_notification_failure()
            logger.error("notification_failed", subject=subject, error=str(exc))
