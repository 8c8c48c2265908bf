"""
Auth Routes - Registration, email verification, login and profile.

NO DICTIONARIES - All requests/responses use Pydantic models.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from structlog import get_logger

from app.api.dependencies import get_account_service, get_current_claims
from app.exceptions import (
    AccountNotFoundError,
    AuthenticationError,
    EmailConflictError,
    EmailNotVerifiedError,
    InvalidInputError,
    OTPAlreadyVerifiedError,
    OTPExpiredError,
    OTPMismatchError,
)
from app.models.api import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    RegisterRequest,
    RegisterResponse,
    ResendCodeRequest,
    UserProfile,
    VerifyCodeRequest,
)
from app.models.domain import SessionClaims, UserAccount
from app.services.accounts import AccountService

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

VERIFY_EMAIL_FIRST = "Please verify your email first"


def to_user_profile(account: UserAccount) -> UserProfile:
    """Public view of an account."""
    return UserProfile(
        id=account.account_id,
        email=account.email,
        full_name=account.full_name,
        email_verified=account.email_verified,
        is_subscribed=account.is_subscribed,
        subscription_plan=account.subscription_plan,
        subscription_expires=account.subscription_expires_at.isoformat()
        if account.subscription_expires_at
        else None,
    )


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


@router.post("/register", response_model=RegisterResponse)
async def register(
    request: RegisterRequest,
    accounts: AccountService = Depends(get_account_service),
) -> RegisterResponse:
    """
    Create an account.

    With email verification enabled a 6-digit code is emailed and no token is
    returned until the code is confirmed.
    """
    try:
        registration = await accounts.register(
            email=request.email,
            password=request.password,
            full_name=request.full_name,
        )
    except InvalidInputError as exc:
        raise _bad_request(exc.message) from exc
    except EmailConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        ) from exc

    account = registration.account
    if registration.session is None:
        return RegisterResponse(
            message="Account created! Check your email for verification code.",
            email=account.email,
            needs_verification=True,
        )

    return RegisterResponse(
        message="Account created!",
        email=account.email,
        needs_verification=False,
        token=registration.session.token,
        user=to_user_profile(account),
    )


@router.post("/verify-otp", response_model=AuthResponse)
async def verify_otp(
    request: VerifyCodeRequest,
    accounts: AccountService = Depends(get_account_service),
) -> AuthResponse:
    """Confirm the emailed code; signs the user in on success."""
    try:
        session = await accounts.verify_code(request.email, request.otp)
    except InvalidInputError as exc:
        raise _bad_request(exc.message) from exc
    except AccountNotFoundError as exc:
        raise _bad_request("User not found") from exc
    except OTPAlreadyVerifiedError as exc:
        raise _bad_request("Email already verified. Please login.") from exc
    except OTPMismatchError as exc:
        raise _bad_request("Invalid OTP code") from exc
    except OTPExpiredError as exc:
        raise _bad_request("OTP expired. Please request a new one.") from exc

    return AuthResponse(
        message="Email verified successfully!",
        token=session.token,
        user=to_user_profile(session.account),
    )


@router.post("/resend-otp", response_model=MessageResponse)
async def resend_otp(
    request: ResendCodeRequest,
    accounts: AccountService = Depends(get_account_service),
) -> MessageResponse:
    """Issue a fresh code, invalidating the previous one."""
    try:
        await accounts.resend_code(request.email)
    except InvalidInputError as exc:
        raise _bad_request(exc.message) from exc
    except AccountNotFoundError as exc:
        raise _bad_request("User not found") from exc
    except OTPAlreadyVerifiedError as exc:
        raise _bad_request("Email already verified") from exc

    return MessageResponse(success=True, message="New OTP sent to your email")


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
) -> AuthResponse:
    """Sign in with email and password."""
    try:
        session = await accounts.login(request.email, request.password)
    except InvalidInputError as exc:
        raise _bad_request(exc.message) from exc
    except AuthenticationError as exc:
        raise _bad_request(exc.message) from exc
    except EmailNotVerifiedError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": VERIFY_EMAIL_FIRST,
                "needs_verification": True,
                "email": exc.email,
            },
        ) from exc

    return AuthResponse(
        message="Login successful!",
        token=session.token,
        user=to_user_profile(session.account),
    )


@router.get("/me", response_model=ProfileResponse)
async def me(
    claims: SessionClaims = Depends(get_current_claims),
    accounts: AccountService = Depends(get_account_service),
) -> ProfileResponse:
    """Profile of the signed-in user, with an expired subscription already lapsed."""
    try:
        account = await accounts.get_profile(claims.account_id)
    except AccountNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        ) from exc

    return ProfileResponse(user=to_user_profile(account))
