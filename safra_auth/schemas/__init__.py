"""Pydantic schemas for the authentication API."""

from safra_auth.schemas.auth import (
    AuthResult,
    ForgotPasswordRequest,
    IdentityPublic,
    LoginRequest,
    PasswordChangeRequest,
    RefreshRequest,
    RegisterRequest,
    SessionPublic,
    ResetPasswordRequest,
    TwoFactorCodeRequest,
    TwoFactorDisableRequest,
    TwoFactorSetup,
    VerifyEmailRequest,
)

__all__ = [
    "AuthResult",
    "ForgotPasswordRequest",
    "IdentityPublic",
    "LoginRequest",
    "PasswordChangeRequest",
    "RefreshRequest",
    "RegisterRequest",
    "SessionPublic",
    "ResetPasswordRequest",
    "TwoFactorCodeRequest",
    "TwoFactorDisableRequest",
    "TwoFactorSetup",
    "VerifyEmailRequest",
]
