"""
TOTP two-factor helpers.

Secrets are base32 strings compatible with standard authenticator apps.
"""

import pyotp

from safra_auth.config import settings


def generate_secret() -> str:
    return pyotp.random_base32()


def provisioning_uri(secret: str, email: str) -> str:
    """otpauth:// URI to render as a QR code during setup."""
    return pyotp.TOTP(secret).provisioning_uri(name=email, issuer_name=settings.TWO_FACTOR_ISSUER)


def verify_code(secret: str | None, code: str | None) -> bool:
    """
    Check a TOTP code, accepting the adjacent time steps.

    Returns False for a missing secret or code instead of raising.
    """
    if not secret or not code:
        return False
    code = code.strip().replace(" ", "")
    if not code.isdigit():
        return False
    return pyotp.TOTP(secret).verify(code, valid_window=settings.TWO_FACTOR_VALID_WINDOW)
