"""
Database Models - SQLAlchemy ORM models with strict typing.

NO DICTIONARIES - All columns use Mapped[] type annotations.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, String, func
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class User(Base):
    """
    ORM model for users table.

    Stores credentials, email verification state and the cached subscription
    entitlement.
    """

    __tablename__ = "users"

    # Primary Key
    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)

    # Identity and credentials
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Email verification
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    otp_code: Mapped[str | None] = mapped_column(String(6), nullable=True)
    otp_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Subscription entitlement
    is_subscribed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    subscription_plan: Mapped[str | None] = mapped_column(String(100), nullable=True)
    subscription_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subscription_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    subscription_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            "otp_code IS NULL OR (otp_expires_at IS NOT NULL AND NOT email_verified)",
            name="ck_users_otp_pending_only",
        ),
        CheckConstraint(
            "NOT is_subscribed OR subscription_expires_at IS NOT NULL",
            name="ck_users_subscription_has_expiry",
        ),
        Index("uq_users_email_lower", func.lower(email), unique=True),
        Index(
            "idx_users_subscription_ref",
            "subscription_ref",
            postgresql_where=(subscription_ref.isnot(None)),
        ),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<User(id={self.id}, email={self.email}, "
            f"verified={self.email_verified}, subscribed={self.is_subscribed})>"
        )
