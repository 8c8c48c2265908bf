"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from app.models.api import PaymentStatus, SubscriptionOutcome


@dataclass(frozen=True)
class UserAccount:
    """Immutable snapshot of a user account as held by the credential store."""

    account_id: UUID
    email: str
    full_name: str
    password_hash: str
    email_verified: bool
    otp_code: str | None
    otp_expires_at: datetime | None
    is_subscribed: bool
    subscription_plan: str | None
    subscription_ref: str | None
    subscription_date: datetime | None
    subscription_expires_at: datetime | None
    created_at: datetime
    updated_at: datetime

    def entitlement_lapsed(self, now: datetime) -> bool:
        """True when the cached subscribed flag is stale because the expiry passed."""
        return (
            self.is_subscribed
            and self.subscription_expires_at is not None
            and self.subscription_expires_at < now
        )


@dataclass(frozen=True)
class NewAccount:
    """Domain model for an account before persistence - immutable intent."""

    email: str
    full_name: str
    password_hash: str
    email_verified: bool
    otp_code: str | None = None
    otp_expires_at: datetime | None = None

    def __post_init__(self) -> None:
        """Validate account invariants."""
        if not self.email or self.email != self.email.lower():
            raise ValueError(f"Email must be non-empty and lowercased: {self.email}")
        if not self.full_name:
            raise ValueError("Full name cannot be empty")
        if not self.password_hash:
            raise ValueError("Password hash cannot be empty")
        if self.otp_code is not None and (self.otp_expires_at is None or self.email_verified):
            raise ValueError("A verification code requires an expiry and an unverified email")


@dataclass(frozen=True)
class OTPChallenge:
    """An issued verification code and its expiry."""

    code: str
    expires_at: datetime


@dataclass(frozen=True)
class Plan:
    """Subscription plan configuration."""

    plan_id: str
    display_name: str
    base_amount_minor: int
    duration_days: int

    def __post_init__(self) -> None:
        """Validate plan configuration."""
        if not self.plan_id:
            raise ValueError("Plan ID required")
        if not self.display_name:
            raise ValueError("Display name required")
        if self.base_amount_minor <= 0:
            raise ValueError(f"Amount must be positive: {self.base_amount_minor}")
        if self.duration_days <= 0:
            raise ValueError(f"Duration must be positive: {self.duration_days}")


@dataclass(frozen=True)
class PlanQuote:
    """Price of a plan after an optional discount."""

    plan: Plan
    discount_code: str | None
    percent_off: int
    amount_minor: int


@dataclass(frozen=True)
class PaymentEvent:
    """
    Normalized payment confirmation.

    Built identically from a verify-poll response or a webhook delivery so the
    subscription state machine cannot tell the two paths apart.
    """

    reference: str
    identity: UUID
    plan: str | None
    status: PaymentStatus
    discount_code: str | None = None

    def __post_init__(self) -> None:
        """Validate event."""
        if not self.reference:
            raise ValueError("Payment reference cannot be empty")


@dataclass(frozen=True)
class SubscriptionResult:
    """Outcome of applying a PaymentEvent."""

    outcome: SubscriptionOutcome
    reference: str
    plan_id: str | None = None
    expires_at: datetime | None = None
    # Entitled right now; an already applied reference may since have lapsed
    is_active: bool = False


@dataclass(frozen=True)
class CheckoutSession:
    """Provider checkout created for a plan purchase."""

    authorization_url: str
    reference: str
    plan_id: str
    amount_minor: int
    discount_code: str | None


@dataclass(frozen=True)
class AuthSession:
    """A signed session token and the account it was issued for."""

    token: str
    account: UserAccount


@dataclass(frozen=True)
class Registration:
    """Result of a registration; session is None while email verification is pending."""

    account: UserAccount
    session: AuthSession | None


@dataclass(frozen=True)
class SessionClaims:
    """Claims carried by a session token."""

    account_id: UUID
    email: str
    full_name: str
