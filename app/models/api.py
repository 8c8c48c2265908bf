"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All data structures are strongly typed.
"""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PaymentStatus(str, Enum):
    """Normalized payment status."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SubscriptionOutcome(str, Enum):
    """Result of applying a payment event to an account."""

    ACTIVATED = "activated"
    ALREADY_APPLIED = "already_applied"
    PAYMENT_NOT_SUCCESSFUL = "payment_not_successful"
    UNKNOWN_ACCOUNT = "unknown_account"


# ============================================================================
# Auth Models
# ============================================================================


class RegisterRequest(BaseModel):
    """POST /auth/register request body."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=255)
    full_name: str = Field(..., max_length=255, alias="fullName")


class VerifyCodeRequest(BaseModel):
    """POST /auth/verify-otp request body."""

    email: str = Field(..., max_length=255)
    otp: str = Field(..., max_length=12)

    @field_validator("otp")
    @classmethod
    def strip_otp(cls, v: str) -> str:
        """Codes are often pasted with surrounding whitespace."""
        return v.strip()


class ResendCodeRequest(BaseModel):
    """POST /auth/resend-otp request body."""

    email: str = Field(..., max_length=255)


class LoginRequest(BaseModel):
    """POST /auth/login request body."""

    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=255)


class UserProfile(BaseModel):
    """Public view of a user account."""

    id: UUID
    email: str
    full_name: str
    email_verified: bool
    is_subscribed: bool
    subscription_plan: str | None = None
    subscription_expires: str | None = None


class MessageResponse(BaseModel):
    """Generic success/failure envelope."""

    success: bool
    message: str


class RegisterResponse(BaseModel):
    """POST /auth/register response."""

    success: bool = True
    message: str
    email: str
    needs_verification: bool
    # Only present when email verification is disabled
    token: str | None = None
    user: UserProfile | None = None


class AuthResponse(BaseModel):
    """Response for endpoints that issue a session token."""

    success: bool = True
    message: str
    token: str
    user: UserProfile


class ProfileResponse(BaseModel):
    """GET /auth/me response."""

    success: bool = True
    user: UserProfile


# ============================================================================
# Plan Models
# ============================================================================


class PlanResponse(BaseModel):
    """A purchasable plan."""

    plan_id: str
    display_name: str
    amount_minor: int
    duration_days: int


class PlanListResponse(BaseModel):
    """GET /plans response."""

    success: bool = True
    currency: str = "NGN"
    plans: list[PlanResponse]


# ============================================================================
# Payment Models
# ============================================================================


class InitializePaymentRequest(BaseModel):
    """POST /payment/initialize request body."""

    model_config = ConfigDict(populate_by_name=True)

    plan: str | None = Field(None, max_length=100)
    discount_code: str | None = Field(None, max_length=64, alias="discountCode")


class InitializePaymentResponse(BaseModel):
    """POST /payment/initialize response."""

    success: bool = True
    authorization_url: str
    reference: str
    plan: str
    amount_minor: int
    discount_code: str | None = None


class SubscriptionInfo(BaseModel):
    """Entitlement granted by a confirmed payment."""

    active: bool
    plan: str | None = None
    expires_at: str | None = None


class VerifyPaymentResponse(BaseModel):
    """GET /payment/verify/{reference} response."""

    success: bool = True
    message: str
    already_processed: bool = False
    subscription: SubscriptionInfo


class WebhookResponse(BaseModel):
    """POST /payment/webhook acknowledgement."""

    status: str
    outcome: SubscriptionOutcome | None = None


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    database: str
    timestamp: str
