"""
Password hashing utilities.

This module provides:
- Password hashing and verification using bcrypt
- Password strength validation
- Opaque random token generation and hashing for one-time tokens
"""

import asyncio
import base64
import hashlib
import secrets
from functools import cached_property

import bcrypt

from safra_auth.config import settings
from safra_auth.core.errors import InternalAuthError, WeakPasswordError

_DUMMY_PASSWORD = "safra-auth-dummy-password"


def validate_password_strength(password: str, min_length: int | None = None) -> None:
    """
    Validate password meets the minimum length requirement.

    Raises:
        WeakPasswordError: If the password is too short
    """
    min_length = min_length or settings.MIN_PASSWORD_LENGTH
    if len(password) < min_length:
        raise WeakPasswordError(f"La contraseña debe tener al menos {min_length} caracteres")


def _prepare_password_for_bcrypt(password: str) -> bytes:
    """
    Prepare password for bcrypt by handling long passwords.

    Bcrypt has a 72 byte limit. For passwords longer than 72 bytes,
    we SHA256 hash them first and encode as base64.
    """
    password_bytes = password.encode("utf-8")

    if len(password_bytes) <= 72:
        return password_bytes

    # SHA256 produces 32 bytes, base64 encoding produces 44 chars (well under 72)
    hashed = hashlib.sha256(password_bytes).digest()
    return base64.b64encode(hashed)


class PasswordHasher:
    """
    Salted bcrypt hashing with a cost fixed for the whole process.

    Usage:
        hasher = PasswordHasher(rounds=12)
        digest = hasher.hash("Password123")
        hasher.verify(digest, "Password123")  # True
    """

    def __init__(self, rounds: int | None = None) -> None:
        self.rounds = rounds or settings.BCRYPT_ROUNDS

    def hash(self, password: str) -> str:
        """
        Hash a password using bcrypt with a fresh random salt.

        Raises:
            InternalAuthError: If the underlying hash call fails
        """
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            hashed = bcrypt.hashpw(_prepare_password_for_bcrypt(password), salt)
        except (ValueError, MemoryError) as e:
            raise InternalAuthError() from e
        return hashed.decode("utf-8")

    def verify(self, hashed_password: str, plain_password: str) -> bool:
        """
        Verify a plain password against a bcrypt digest.

        Returns False for a malformed digest instead of raising.
        """
        try:
            return bcrypt.checkpw(
                _prepare_password_for_bcrypt(plain_password),
                hashed_password.encode("utf-8"),
            )
        except (ValueError, TypeError):
            return False

    @cached_property
    def dummy_hash(self) -> str:
        """Digest with the same cost as real ones, used for unknown accounts."""
        return self.hash(_DUMMY_PASSWORD)

    def verify_dummy(self, plain_password: str) -> bool:
        """Spend the same time as a real verification, always failing."""
        self.verify(self.dummy_hash, plain_password)
        return False

    async def hash_async(self, password: str) -> str:
        """Hash in a worker thread so the event loop is not blocked."""
        return await asyncio.to_thread(self.hash, password)

    async def verify_async(self, hashed_password: str, plain_password: str) -> bool:
        return await asyncio.to_thread(self.verify, hashed_password, plain_password)

    async def verify_dummy_async(self, plain_password: str) -> bool:
        return await asyncio.to_thread(self.verify_dummy, plain_password)


def generate_opaque_token() -> str:
    """
    Create a cryptographically secure opaque token.

    Returns:
        URL-safe random token string (43 characters, 256 bits)
    """
    return secrets.token_urlsafe(32)


def hash_opaque_token(token: str) -> str:
    """SHA-256 hex digest used to store one-time tokens (never stored in plaintext)."""
    return hashlib.sha256(token.encode()).hexdigest()
