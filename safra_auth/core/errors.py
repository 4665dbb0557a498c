"""
Authentication error taxonomy.

Components raise these exceptions; AuthService catches them at its boundary
and turns them into an AuthResult, so none of them ever reaches the HTTP layer
as an uncaught exception. Messages are user-facing and in Spanish.
"""

from enum import Enum


class AuthErrorCode(str, Enum):
    """Stable error codes returned to callers"""

    INVALID_CREDENTIALS = "invalid_credentials"
    RATE_LIMITED = "rate_limited"
    TWO_FACTOR_REQUIRED = "two_factor_required"
    ACCOUNT_DISABLED = "account_disabled"
    SESSION_EXPIRED = "session_expired"
    INVALID_TOKEN = "invalid_token"
    EMAIL_EXISTS = "email_exists"
    WEAK_PASSWORD = "weak_password"
    INTERNAL_ERROR = "internal_error"


DEFAULT_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.INVALID_CREDENTIALS: "Credenciales inválidas",
    AuthErrorCode.RATE_LIMITED: "Demasiados intentos. Intente de nuevo más tarde.",
    AuthErrorCode.TWO_FACTOR_REQUIRED: "Se requiere el código de verificación en dos pasos",
    AuthErrorCode.ACCOUNT_DISABLED: "Cuenta desactivada",
    AuthErrorCode.SESSION_EXPIRED: "La sesión ha expirado. Inicie sesión nuevamente.",
    AuthErrorCode.INVALID_TOKEN: "Token inválido",
    AuthErrorCode.EMAIL_EXISTS: "El correo ya está registrado",
    AuthErrorCode.WEAK_PASSWORD: "La contraseña no cumple los requisitos mínimos",
    AuthErrorCode.INTERNAL_ERROR: "Error interno. Intente de nuevo más tarde.",
}


class ConfigurationError(Exception):
    """Raised at startup when the auth core is misconfigured."""


class AuthError(Exception):
    """Base class for every recoverable authentication failure."""

    code: AuthErrorCode = AuthErrorCode.INTERNAL_ERROR

    def __init__(self, message: str | None = None) -> None:
        self.message = message or DEFAULT_MESSAGES[self.code]
        super().__init__(self.message)


class InvalidCredentialsError(AuthError):
    code = AuthErrorCode.INVALID_CREDENTIALS


class RateLimitedError(AuthError):
    """Too many failed attempts; retry_after is a coarse hint in seconds."""

    code = AuthErrorCode.RATE_LIMITED

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)


class TwoFactorRequiredError(AuthError):
    code = AuthErrorCode.TWO_FACTOR_REQUIRED


class AccountDisabledError(AuthError):
    code = AuthErrorCode.ACCOUNT_DISABLED


class SessionExpiredError(AuthError):
    code = AuthErrorCode.SESSION_EXPIRED


class InvalidTokenError(AuthError):
    """Malformed, tampered, wrong-algorithm or wrong-type token."""

    code = AuthErrorCode.INVALID_TOKEN


class TokenExpiredError(AuthError):
    """Well-formed token past its exp claim. Deliberately not an InvalidTokenError."""

    code = AuthErrorCode.SESSION_EXPIRED


class EmailExistsError(AuthError):
    code = AuthErrorCode.EMAIL_EXISTS


class WeakPasswordError(AuthError):
    code = AuthErrorCode.WEAK_PASSWORD


class InternalAuthError(AuthError):
    """Hashing, signing or store failure. Logged in full, reported generically."""

    code = AuthErrorCode.INTERNAL_ERROR
