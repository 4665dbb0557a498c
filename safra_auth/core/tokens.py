"""
Signed token issuing and verification.

Access and refresh tokens are JWTs signed with the shared secret using a single
configured algorithm. Verification never negotiates the algorithm: a token
whose header names any other algorithm (including "none") is rejected.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt

from safra_auth.config import MIN_SECRET_KEY_BYTES, TokenType, settings
from safra_auth.core.errors import (
    ConfigurationError,
    InternalAuthError,
    InvalidTokenError,
    TokenExpiredError,
)

REQUIRED_CLAIMS = ["exp", "iat", "sub", "type", "sid", "email", "role", "kind"]


@dataclass(frozen=True)
class TokenClaims:
    """Identity claims carried by a token, independent of its type and expiry."""

    subject: str
    email: str
    role: str
    session_id: str
    principal_kind: str


@dataclass(frozen=True)
class VerifiedToken:
    """Claims plus the metadata checked during verification."""

    claims: TokenClaims
    token_type: TokenType
    expires_at: datetime


class TokenIssuer:
    """
    JWT issuer bound to one secret and one algorithm.

    Raises ConfigurationError on construction if the secret is shorter than
    32 bytes, so a misconfigured process fails at startup.
    """

    def __init__(self, secret_key: str | None = None, algorithm: str | None = None) -> None:
        secret_key = secret_key if secret_key is not None else settings.SECRET_KEY
        if len(secret_key.encode("utf-8")) < MIN_SECRET_KEY_BYTES:
            raise ConfigurationError(
                f"Token signing secret must be at least {MIN_SECRET_KEY_BYTES} bytes"
            )
        self._secret_key = secret_key
        self.algorithm = algorithm or settings.ALGORITHM

    def issue(self, claims: TokenClaims, token_type: TokenType, ttl: timedelta) -> str:
        """
        Sign claims into a token of the given type that expires after ttl.

        Raises:
            InternalAuthError: If signing fails
        """
        now = datetime.now(UTC)
        payload = {
            "sub": claims.subject,
            "email": claims.email,
            "role": claims.role,
            "sid": claims.session_id,
            "kind": claims.principal_kind,
            "type": token_type.value,
            "iat": now,
            "exp": now + ttl,
        }
        try:
            return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            raise InternalAuthError() from e

    def verify(self, token: str, expected_type: TokenType) -> VerifiedToken:
        """
        Verify signature, algorithm, expiry and type of a token.

        Raises:
            TokenExpiredError: Token is well formed but past its exp claim
            InvalidTokenError: Malformed, tampered, wrong algorithm or wrong type
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS, "verify_exp": True, "verify_signature": True},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError() from e
        except jwt.PyJWTError as e:
            raise InvalidTokenError() from e

        if payload.get("type") != expected_type.value:
            raise InvalidTokenError()

        try:
            claims = TokenClaims(
                subject=str(payload["sub"]),
                email=str(payload["email"]),
                role=str(payload["role"]),
                session_id=str(payload["sid"]),
                principal_kind=str(payload["kind"]),
            )
            expires_at = datetime.fromtimestamp(payload["exp"], tz=UTC)
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise InvalidTokenError() from e

        return VerifiedToken(claims=claims, token_type=expected_type, expires_at=expires_at)
