"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""

from datetime import datetime
from uuid import UUID


class MZoneError(Exception):
    """Base exception for all MZone errors."""

    pass


class InvalidInputError(MZoneError):
    """Raised when request input is missing or malformed."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class EmailConflictError(MZoneError):
    """Raised when an email is already registered (case-insensitive)."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"Email already registered: {email}")


class AuthenticationError(MZoneError):
    """Raised when authentication fails (bad credentials, invalid token)."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Authentication failed: {message}")


class AccountNotFoundError(MZoneError):
    """Raised when account doesn't exist."""

    def __init__(self, lookup: UUID | str) -> None:
        self.lookup = lookup
        super().__init__(f"Account not found: {lookup}")


class EmailNotVerifiedError(MZoneError):
    """Raised when an operation requires a verified email."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"Email not verified: {email}")


class OTPAlreadyVerifiedError(MZoneError):
    """Raised when a code is issued or checked for an already verified account."""

    def __init__(self, account_id: UUID) -> None:
        self.account_id = account_id
        super().__init__(f"Account {account_id} is already verified")


class OTPExpiredError(MZoneError):
    """Raised when the outstanding code has expired (or none is outstanding)."""

    def __init__(self, account_id: UUID, expired_at: datetime | None) -> None:
        self.account_id = account_id
        self.expired_at = expired_at
        super().__init__(f"Verification code for {account_id} expired at {expired_at}")


class OTPMismatchError(MZoneError):
    """Raised when the supplied code does not match the outstanding one."""

    def __init__(self, account_id: UUID) -> None:
        self.account_id = account_id
        super().__init__(f"Invalid verification code for {account_id}")


class PlanNotFoundError(MZoneError):
    """Raised when a plan id is not in the catalog."""

    def __init__(self, plan_id: str | None) -> None:
        self.plan_id = plan_id
        super().__init__(f"Unknown plan: {plan_id}")


class PaymentProviderError(MZoneError):
    """Raised when payment provider operation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Payment provider error: {message}")


class PaymentMetadataError(MZoneError):
    """Raised when a provider transaction lacks the metadata we embedded."""

    def __init__(self, reference: str, field: str) -> None:
        self.reference = reference
        self.field = field
        super().__init__(f"Transaction {reference} is missing metadata field: {field}")


class WebhookVerificationError(MZoneError):
    """Raised when webhook verification fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Webhook verification error: {message}")


class NotificationDeliveryError(MZoneError):
    """Raised when an email could not be handed to the delivery service."""

    def __init__(self, recipient: str, message: str) -> None:
        self.recipient = recipient
        self.message = message
        super().__init__(f"Failed to deliver notification to {recipient}: {message}")
