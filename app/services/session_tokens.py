"""
Session tokens - HS256 JWTs issued at login and email verification.
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt
from structlog import get_logger

from app.exceptions import AuthenticationError
from app.models.domain import SessionClaims

logger = get_logger(__name__)

ALGORITHM = "HS256"


class SessionTokenIssuer:
    """Signs and verifies user session tokens."""

    def __init__(self, secret: str, default_ttl: timedelta = timedelta(days=7)) -> None:
        self.secret = secret
        self.default_ttl = default_ttl

    def sign(self, claims: SessionClaims, ttl: timedelta | None = None) -> str:
        """Create a signed token for the given claims."""
        now = datetime.now(UTC)
        payload = {
            "sub": str(claims.account_id),
            "email": claims.email,
            "name": claims.full_name,
            "iat": now,
            "exp": now + (ttl or self.default_ttl),
        }
        return jwt.encode(payload, self.secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> SessionClaims:
        """
        Verify a token and return its claims.

        Raises:
            AuthenticationError: If the token is expired, tampered with or malformed
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            logger.warning("session_token_expired")
            raise AuthenticationError("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            logger.warning("session_token_invalid", error=str(exc))
            raise AuthenticationError("Invalid token") from exc

        try:
            account_id = UUID(payload["sub"])
        except ValueError as exc:
            raise AuthenticationError("Invalid token subject") from exc

        return SessionClaims(
            account_id=account_id,
            email=payload.get("email", ""),
            full_name=payload.get("name", ""),
        )
