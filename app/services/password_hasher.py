"""
Credential Hasher - Argon2id password hashing.
"""

from typing import Protocol

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError


class CredentialHasher(Protocol):
    """Password hashing protocol."""

    def hash(self, plaintext: str) -> str:
        """Hash a password for storage."""
        ...

    def verify(self, plaintext: str, password_hash: str) -> bool:
        """Check a password against a stored hash."""
        ...


class Argon2CredentialHasher:
    """CredentialHasher using argon2-cffi defaults (Argon2id)."""

    def __init__(self, password_hasher: PasswordHasher | None = None) -> None:
        self.password_hasher = password_hasher or PasswordHasher()

    def hash(self, plaintext: str) -> str:
        return self.password_hasher.hash(plaintext)

    def verify(self, plaintext: str, password_hash: str) -> bool:
        try:
            return self.password_hasher.verify(password_hash, plaintext)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError):
            # Corrupt or foreign hash in the store: treat as a failed login
            return False
