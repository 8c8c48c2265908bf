"""
OTP Verifier - Email ownership verification with short-lived numeric codes.

Per account: unverified without a code -> unverified with a code -> verified.
Codes are single use; issuing a new code replaces the previous one.
"""

import hmac
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from uuid import UUID

from structlog import get_logger

from app.exceptions import (
    AccountNotFoundError,
    OTPAlreadyVerifiedError,
    OTPExpiredError,
    OTPMismatchError,
)
from app.models.domain import OTPChallenge, UserAccount
from app.services.credential_store import CredentialStore

logger = get_logger(__name__)

OTP_MIN = 100_000
OTP_MAX = 999_999


def generate_code() -> str:
    """Six-digit code drawn uniformly from [100000, 999999]."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def _utc_now() -> datetime:
    return datetime.now(UTC)


class OTPVerifier:
    """Issues and checks verification codes stored on the account row."""

    def __init__(
        self,
        store: CredentialStore,
        ttl: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = _utc_now,
        code_generator: Callable[[], str] = generate_code,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self.clock = clock
        self.code_generator = code_generator

    def new_challenge(self) -> OTPChallenge:
        """Create a challenge without persisting it (used when inserting a new account)."""
        return OTPChallenge(code=self.code_generator(), expires_at=self.clock() + self.ttl)

    async def issue(self, account_id: UUID) -> OTPChallenge:
        """
        Issue a new code for an unverified account.

        Raises:
            AccountNotFoundError: No such account
            OTPAlreadyVerifiedError: Account is already verified
        """
        await self._load_unverified(account_id)

        challenge = self.new_challenge()
        await self.store.update(
            account_id,
            otp_code=challenge.code,
            otp_expires_at=challenge.expires_at,
        )
        logger.info(
            "otp_issued",
            account_id=str(account_id),
            expires_at=challenge.expires_at.isoformat(),
        )
        return challenge

    async def reissue(self, account_id: UUID) -> OTPChallenge:
        """Replace any outstanding code with a fresh one."""
        return await self.issue(account_id)

    async def check(self, account_id: UUID, supplied_code: str) -> UserAccount:
        """
        Check a code and mark the account verified on success.

        Raises:
            AccountNotFoundError: No such account
            OTPAlreadyVerifiedError: Account is already verified
            OTPExpiredError: No code outstanding, or the code expired
            OTPMismatchError: Code does not match
        """
        account = await self._load_unverified(account_id)

        if account.otp_code is None or account.otp_expires_at is None:
            raise OTPExpiredError(account_id, None)

        if self.clock() > account.otp_expires_at:
            logger.info("otp_expired", account_id=str(account_id))
            raise OTPExpiredError(account_id, account.otp_expires_at)

        if not hmac.compare_digest(account.otp_code.encode(), supplied_code.strip().encode()):
            logger.info("otp_mismatch", account_id=str(account_id))
            raise OTPMismatchError(account_id)

        verified = await self.store.mark_verified(account_id, account.otp_code)
        if verified is None:
            # A concurrent check or resend changed the row since it was read
            await self._load_unverified(account_id)
            logger.info("otp_replaced_during_check", account_id=str(account_id))
            raise OTPMismatchError(account_id)

        logger.info("otp_verified", account_id=str(account_id))
        return verified

    async def _load_unverified(self, account_id: UUID) -> UserAccount:
        account = await self.store.find_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        if account.email_verified:
            raise OTPAlreadyVerifiedError(account_id)
        return account
