"""
Credential Store - Persistence boundary for user accounts.

The Protocol is what services depend on; SQLAlchemyCredentialStore is the
PostgreSQL implementation. Every operation touches a single row.
"""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.db.models import User, utc_now
from app.exceptions import AccountNotFoundError, EmailConflictError
from app.models.domain import NewAccount, UserAccount

logger = get_logger(__name__)

# Columns that may be changed through update(); identity and audit columns are not.
UPDATABLE_FIELDS = frozenset(
    {
        "full_name",
        "password_hash",
        "email_verified",
        "otp_code",
        "otp_expires_at",
        "is_subscribed",
        "subscription_plan",
        "subscription_ref",
        "subscription_date",
        "subscription_expires_at",
    }
)


class CredentialStore(Protocol):
    """
    Credential store protocol.

    Emails are compared case-insensitively. Implementations must make
    mark_verified, apply_subscription and expire_entitlement single
    conditional writes.
    """

    async def find_by_email(self, email: str) -> UserAccount | None:
        """Look up an account by email (case-insensitive)."""
        ...

    async def find_by_id(self, account_id: UUID) -> UserAccount | None:
        """Look up an account by id."""
        ...

    async def insert(self, account: NewAccount) -> UserAccount:
        """
        Create an account.

        Raises:
            EmailConflictError: If the email is already registered
        """
        ...

    async def update(self, account_id: UUID, **fields: object) -> UserAccount:
        """
        Update fields on an account and return the new snapshot.

        Raises:
            AccountNotFoundError: If the account does not exist
        """
        ...

    async def mark_verified(self, account_id: UUID, code: str) -> UserAccount | None:
        """
        Verify the email and clear the code, only while `code` is still outstanding.

        Returns:
            The verified snapshot, or None if the account is already verified or
            holds a different code
        """
        ...

    async def apply_subscription(
        self,
        account_id: UUID,
        reference: str,
        plan_id: str,
        granted_at: datetime,
        expires_at: datetime,
    ) -> bool:
        """
        Grant an entitlement unless `reference` is already the stored reference.

        Returns:
            True if the row was updated, False if the reference was already applied
            (or the account vanished)
        """
        ...

    async def expire_entitlement(self, account_id: UUID, now: datetime) -> UserAccount:
        """
        Clear is_subscribed if the stored expiry is before `now`.

        Returns:
            The account snapshot after the (possibly skipped) write

        Raises:
            AccountNotFoundError: If the account does not exist
        """
        ...


def to_user_account(user: User) -> UserAccount:
    """Convert ORM row to immutable domain snapshot."""
    return UserAccount(
        account_id=user.id,
        email=user.email,
        full_name=user.full_name,
        password_hash=user.password_hash,
        email_verified=user.email_verified,
        otp_code=user.otp_code,
        otp_expires_at=user.otp_expires_at,
        is_subscribed=user.is_subscribed,
        subscription_plan=user.subscription_plan,
        subscription_ref=user.subscription_ref,
        subscription_date=user.subscription_date,
        subscription_expires_at=user.subscription_expires_at,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


class SQLAlchemyCredentialStore:
    """Credential store backed by the users table."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize credential store with database session."""
        self.session = session

    async def find_by_email(self, email: str) -> UserAccount | None:
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()
        return to_user_account(user) if user else None

    async def find_by_id(self, account_id: UUID) -> UserAccount | None:
        stmt = select(User).where(User.id == account_id)
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()
        return to_user_account(user) if user else None

    async def insert(self, account: NewAccount) -> UserAccount:
        if await self.find_by_email(account.email) is not None:
            raise EmailConflictError(account.email)

        user = User(
            email=account.email,
            full_name=account.full_name,
            password_hash=account.password_hash,
            email_verified=account.email_verified,
            otp_code=account.otp_code,
            otp_expires_at=account.otp_expires_at,
            is_subscribed=False,
        )
        self.session.add(user)

        try:
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as exc:
            # Lost a race with a concurrent registration (unique index on lower(email))
            logger.warning("account_insert_conflict", email=account.email, error=str(exc))
            await self.session.rollback()
            raise EmailConflictError(account.email) from exc

        logger.info("account_inserted", account_id=str(user.id))
        return to_user_account(user)

    async def update(self, account_id: UUID, **fields: object) -> UserAccount:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        stmt = (
            update(User)
            .where(User.id == account_id)
            .values(**fields, updated_at=utc_now())
            .returning(User)
        )
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()
        if user is None:
            await self.session.rollback()
            raise AccountNotFoundError(account_id)

        await self.session.commit()
        return to_user_account(user)

    async def mark_verified(self, account_id: UUID, code: str) -> UserAccount | None:
        stmt = (
            update(User)
            .where(
                User.id == account_id,
                User.email_verified.is_(False),
                User.otp_code == code,
            )
            .values(
                email_verified=True,
                otp_code=None,
                otp_expires_at=None,
                updated_at=utc_now(),
            )
            .returning(User)
        )
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()
        await self.session.commit()
        return to_user_account(user) if user else None

    async def apply_subscription(
        self,
        account_id: UUID,
        reference: str,
        plan_id: str,
        granted_at: datetime,
        expires_at: datetime,
    ) -> bool:
        # Compare-and-set on subscription_ref: the WHERE clause is the idempotency check
        stmt = (
            update(User)
            .where(
                User.id == account_id,
                User.subscription_ref.is_distinct_from(reference),
            )
            .values(
                is_subscribed=True,
                subscription_plan=plan_id,
                subscription_ref=reference,
                subscription_date=granted_at,
                subscription_expires_at=expires_at,
                updated_at=utc_now(),
            )
            .returning(User.id)
        )
        result = await self.session.execute(stmt)
        applied = result.scalar_one_or_none() is not None
        await self.session.commit()
        return applied

    async def expire_entitlement(self, account_id: UUID, now: datetime) -> UserAccount:
        stmt = (
            update(User)
            .where(
                User.id == account_id,
                User.is_subscribed.is_(True),
                User.subscription_expires_at < now,
            )
            .values(is_subscribed=False, updated_at=utc_now())
            .returning(User.id)
        )
        await self.session.execute(stmt)
        await self.session.commit()

        account = await self.find_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account
