"""
Authentication schemas for request/response validation.

This module defines Pydantic models for authentication operations:
- Login, registration and password change requests
- Password reset and email verification requests
- The AuthResult returned by every AuthService operation
- Public identity and two-factor setup responses

Password strength is enforced by AuthService, not here, so a short password
produces a weak_password result instead of a generic validation error.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from safra_auth.core.errors import (
    AuthError,
    AuthErrorCode,
    RateLimitedError,
    TwoFactorRequiredError,
)
from safra_auth.models.identity import IdentityBase


class LoginRequest(BaseModel):
    """Request schema for login (users and admins)."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=255)  # Allow any length for existing accounts
    two_factor_code: str | None = Field(default=None, max_length=10)
    remember_me: bool = False


class RegisterRequest(BaseModel):
    """Request schema for public user registration."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=255)
    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)


class RefreshRequest(BaseModel):
    """
    Request schema for token refresh (optional body for non-cookie flow).

    When using HTTPOnly cookies, the refresh token is sent automatically.
    """

    refresh_token: str | None = Field(
        default=None, description="Refresh token (optional if using cookies)"
    )


class PasswordChangeRequest(BaseModel):
    """Request schema for password change."""

    current_password: str = Field(..., min_length=1, max_length=255)
    new_password: str = Field(..., min_length=1, max_length=255)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Request schema for password reset with token."""

    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=255)


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1)


class TwoFactorCodeRequest(BaseModel):
    code: str = Field(..., min_length=6, max_length=10)


class TwoFactorDisableRequest(BaseModel):
    password: str = Field(..., min_length=1, max_length=255)


class IdentityPublic(IdentityBase):
    """Identity fields safe to return to the identity itself."""

    id: int
    email_verified: bool | None = None
    username: str | None = None
    two_factor_enabled: bool = False
    last_login: datetime | None = None
    created_at: datetime | None = None


class TwoFactorSetup(BaseModel):
    """Secret and otpauth:// URI shown once while enrolling an authenticator app."""

    secret: str
    provisioning_uri: str


class SessionPublic(BaseModel):
    """An active session as shown to its owner. The session id itself is never exposed."""

    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None
    current: bool = False


class AuthResult(BaseModel):
    """
    Outcome of an AuthService operation.

    Failures carry a stable code and a user-facing message; they never carry
    a stack trace or any detail about which check failed beyond the code.
    One-time tokens meant for out-of-band delivery (email) are excluded from
    serialization.
    """

    success: bool
    code: AuthErrorCode | None = None
    message: str | None = None

    user: IdentityPublic | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    token_type: str = "bearer"
    session_id: str | None = Field(default=None, exclude=True)
    expires_at: datetime | None = None

    requires_two_factor: bool = False
    is_locked: bool = False
    retry_after: int | None = None

    two_factor: TwoFactorSetup | None = None
    sessions: list[SessionPublic] | None = None

    # Delivered by email, never over the API
    verification_token: str | None = Field(default=None, exclude=True)
    reset_token: str | None = Field(default=None, exclude=True)

    @classmethod
    def ok(cls, message: str | None = None, **fields: object) -> "AuthResult":
        return cls(success=True, message=message, **fields)  # type: ignore[arg-type]

    @classmethod
    def from_error(cls, error: AuthError) -> "AuthResult":
        return cls(
            success=False,
            code=error.code,
            message=error.message,
            requires_two_factor=isinstance(error, TwoFactorRequiredError),
            is_locked=isinstance(error, RateLimitedError),
            retry_after=error.retry_after if isinstance(error, RateLimitedError) else None,
        )
