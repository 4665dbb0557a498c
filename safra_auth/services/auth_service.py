"""
Auth orchestrator.

AuthService composes the password hasher, token issuer, credential store,
session store and rate limiter into the login/logout/refresh/register/
change-password operations. One implementation serves both principal kinds
(public users and admins); the kind decides which tables, role space and
lifetimes are used.

Every public operation returns an AuthResult. Recoverable failures are raised
internally as AuthError subclasses and converted at this boundary; anything
else rolls back the transaction, is logged with its traceback and reported as
internal_error with a generic message.

The authenticate_* methods are the exception: they return an AuthContext or
raise, because they back FastAPI dependencies rather than endpoints.
"""

import functools
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any, Concatenate, ParamSpec

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from safra_auth.config import TokenType, settings
from safra_auth.core.errors import (
    AccountDisabledError,
    AuthError,
    EmailExistsError,
    InternalAuthError,
    InvalidCredentialsError,
    InvalidTokenError,
    SessionExpiredError,
    TwoFactorRequiredError,
)
from safra_auth.core.logging import get_logger
from safra_auth.core.principals import USER, AuthContext, ClientInfo, PrincipalKind
from safra_auth.core.security import (
    PasswordHasher,
    generate_opaque_token,
    hash_opaque_token,
    validate_password_strength,
)
from safra_auth.core.tokens import TokenClaims, TokenIssuer
from safra_auth.models.identity import CredentialedIdentity
from safra_auth.models.one_time_token import EmailVerifications, PasswordResets
from safra_auth.schemas.auth import AuthResult, IdentityPublic, SessionPublic, TwoFactorSetup
from safra_auth.services import two_factor
from safra_auth.services.credential_store import CredentialStore
from safra_auth.services.rate_limit import LoginRateLimiter
from safra_auth.services.session_store import SessionStore
from safra_auth.utils import normalize_email, utcnow

logger = get_logger(__name__)

P = ParamSpec("P")

MSG_LOGIN_OK = "Inicio de sesión exitoso"
MSG_REGISTER_OK = "Registro exitoso. Revise su correo para verificar la cuenta."
MSG_REFRESH_OK = "Sesión renovada"
MSG_LOGOUT_OK = "Sesión cerrada"
MSG_LOGOUT_ALL_OK = "Se cerraron todas las sesiones"
MSG_PASSWORD_CHANGED = "Contraseña actualizada"
MSG_RESET_REQUESTED = (
    "Si el correo está registrado, recibirá un enlace para restablecer la contraseña."
)
MSG_RESET_OK = "Contraseña restablecida. Inicie sesión nuevamente."
MSG_EMAIL_VERIFIED = "Correo verificado"
MSG_2FA_SETUP = "Escanee el código QR con su aplicación de autenticación"
MSG_2FA_ENABLED = "Verificación en dos pasos activada"
MSG_2FA_DISABLED = "Verificación en dos pasos desactivada"
MSG_ACCOUNT_DEACTIVATED = "Cuenta desactivada"
MSG_ACCOUNT_ACTIVATED = "Cuenta activada"
MSG_ACCOUNT_DELETED = "Cuenta eliminada"

MSG_INVALID_CODE = "Código de verificación inválido"
MSG_INVALID_RESET_LINK = "El enlace no es válido o ha expirado"
MSG_ACCOUNT_NOT_FOUND = "Cuenta no encontrada"
MSG_2FA_ALREADY_ENABLED = "La verificación en dos pasos ya está activada"
MSG_2FA_NOT_STARTED = "Primero configure la verificación en dos pasos"


@functools.lru_cache
def get_password_hasher() -> PasswordHasher:
    """Process-wide hasher; the cost is fixed for the life of the process."""
    return PasswordHasher()


@functools.lru_cache
def get_token_issuer() -> TokenIssuer:
    """
    Process-wide token issuer.

    Called during application startup so a short secret stops the process
    before it serves any request.
    """
    return TokenIssuer()


def auth_operation(
    func: Callable[Concatenate["AuthService", P], Awaitable[AuthResult]],
) -> Callable[Concatenate["AuthService", P], Awaitable[AuthResult]]:
    """
    Run an operation as one unit of work and convert its errors into a result.

    Recoverable AuthErrors are committed (attempt records must survive a
    failed login) and returned as failures. Internal errors roll back.
    """

    @functools.wraps(func)
    async def wrapper(self: "AuthService", *args: P.args, **kwargs: P.kwargs) -> AuthResult:
        try:
            try:
                result = await func(self, *args, **kwargs)
            except AuthError as e:
                if isinstance(e, InternalAuthError):
                    raise
                logger.info(
                    "auth_operation_rejected",
                    operation=func.__name__,
                    principal_kind=self.kind.name,
                    code=e.code.value,
                )
                result = AuthResult.from_error(e)
            await self.db.commit()
            return result
        except Exception:
            await self.db.rollback()
            logger.exception(
                "auth_operation_failed",
                operation=func.__name__,
                principal_kind=self.kind.name,
            )
            return AuthResult.from_error(InternalAuthError())

    return wrapper


class AuthService:
    """
    Authentication state machine for one principal kind.

    Built per request around the request's database session:

        service = AuthService(db, USER)
        result = await service.login("user@x.do", "Password123", client)
    """

    def __init__(
        self,
        db: AsyncSession,
        kind: PrincipalKind = USER,
        hasher: PasswordHasher | None = None,
        issuer: TokenIssuer | None = None,
    ) -> None:
        self.db = db
        self.kind = kind
        self.hasher = hasher or get_password_hasher()
        self.issuer = issuer or get_token_issuer()
        self.credentials = CredentialStore(db, kind)
        self.sessions = SessionStore(db, kind)
        self.limiter = LoginRateLimiter(db, kind)

    # ===== Helpers =====

    def _public(self, identity: CredentialedIdentity) -> IdentityPublic:
        return IdentityPublic.model_validate(identity)

    def _claims(self, identity: Any, session_id: str) -> TokenClaims:
        return TokenClaims(
            subject=str(identity.id),
            email=identity.email,
            role=identity.role,
            session_id=session_id,
            principal_kind=self.kind.name,
        )

    async def _get_identity(self, identity_id: int) -> Any:
        identity = await self.credentials.get_by_id(identity_id)
        if identity is None:
            raise InvalidCredentialsError(MSG_ACCOUNT_NOT_FOUND)
        return identity

    def _require_registration(self) -> None:
        if not self.kind.supports_registration:
            raise NotImplementedError(f"{self.kind.name} identities are provisioned, not registered")

    async def _record_login_failure(
        self, identity: Any, email: str, client: ClientInfo, reason: str
    ) -> None:
        await self.limiter.record_attempt(email, client.ip_address, success=False)
        await self.credentials.record_failed_login(identity.id)
        if await self.limiter.is_blocked(email=email):
            # Mirror only; lockout decisions are read from the attempt history
            await self.credentials.mark_locked(identity.id, utcnow() + self.limiter.window)
            logger.warning("account_locked", principal_kind=self.kind.name, identity_id=identity.id)
        logger.info(
            "login_failed",
            principal_kind=self.kind.name,
            identity_id=identity.id,
            reason=reason,
            ip_address=client.ip_address,
        )

    async def _resolve_token(self, token: str, expected_type: TokenType) -> Any:
        """Verify a token and the session it names. Returns the ValidatedSession."""
        verified = self.issuer.verify(token, expected_type)
        claims = verified.claims
        if claims.principal_kind != self.kind.name:
            raise InvalidTokenError()

        validated = await self.sessions.validate(claims.session_id)
        if validated is None:
            raise SessionExpiredError()
        if str(validated.identity.id) != claims.subject:  # type: ignore[attr-defined]
            raise InvalidTokenError()
        return validated

    def _context(self, identity: Any, session_id: str) -> AuthContext:
        return AuthContext(
            identity_id=identity.id,
            email=identity.email,
            role=identity.role,
            principal_kind=self.kind.name,
            session_id=session_id,
        )

    async def _create_email_verification(self, identity_id: int) -> str:
        token = generate_opaque_token()
        self.db.add(
            EmailVerifications(
                user_id=identity_id,
                token_hash=hash_opaque_token(token),
                expires_at=utcnow() + timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS),
            )
        )
        await self.db.flush()
        return token

    # ===== Login / session lifecycle =====

    @auth_operation
    async def login(
        self,
        email: str,
        password: str,
        client: ClientInfo | None = None,
        two_factor_code: str | None = None,
        remember_me: bool = False,
    ) -> AuthResult:
        """
        Authenticate with email and password and open a new session.

        States: rate check, credential lookup, password verify, active check,
        optional two-factor check, session create. Every failure before the
        session is created leaves no session behind.
        """
        client = client or ClientInfo()
        email = normalize_email(email)

        await self.limiter.check(email, client.ip_address)

        identity: Any = await self.credentials.get_by_email(email)
        if identity is None:
            # Same cost as a real verification so response time does not reveal the email exists
            await self.hasher.verify_dummy_async(password)
            await self.limiter.record_attempt(email, client.ip_address, success=False)
            logger.info(
                "login_failed",
                principal_kind=self.kind.name,
                reason="unknown_email",
                ip_address=client.ip_address,
            )
            raise InvalidCredentialsError()

        if not await self.hasher.verify_async(identity.password_hash, password):
            await self._record_login_failure(identity, email, client, reason="wrong_password")
            raise InvalidCredentialsError()

        if not identity.is_active:
            raise AccountDisabledError()

        if identity.two_factor_enabled:
            if not two_factor_code:
                raise TwoFactorRequiredError()
            if not two_factor.verify_code(identity.two_factor_secret, two_factor_code):
                await self._record_login_failure(identity, email, client, reason="wrong_2fa_code")
                raise InvalidCredentialsError()

        session_id, session_expires_at = await self.sessions.create(
            identity.id, client, self.kind.session_ttl(remember_me)
        )
        claims = self._claims(identity, session_id)
        access_token = self.issuer.issue(claims, TokenType.ACCESS, self.kind.access_token_ttl())
        refresh_token = self.issuer.issue(claims, TokenType.REFRESH, self.kind.refresh_token_ttl())

        await self.limiter.record_attempt(email, client.ip_address, success=True)
        await self.credentials.record_successful_login(identity.id, client.ip_address)
        identity = await self.credentials.get_by_id(identity.id)

        logger.info(
            "login_succeeded",
            principal_kind=self.kind.name,
            identity_id=identity.id,
            ip_address=client.ip_address,
        )
        return AuthResult.ok(
            MSG_LOGIN_OK,
            user=self._public(identity),
            access_token=access_token,
            refresh_token=refresh_token,
            session_id=session_id,
            expires_at=session_expires_at,
        )

    @auth_operation
    async def refresh(self, refresh_token: str) -> AuthResult:
        """Exchange a refresh token for a new access token on the same session."""
        validated = await self._resolve_token(refresh_token, TokenType.REFRESH)
        session_id = validated.session.id
        identity = validated.identity

        await self.sessions.touch(session_id)
        access_token = self.issuer.issue(
            self._claims(identity, session_id), TokenType.ACCESS, self.kind.access_token_ttl()
        )
        logger.debug("token_refreshed", principal_kind=self.kind.name, identity_id=identity.id)
        return AuthResult.ok(
            MSG_REFRESH_OK,
            user=self._public(identity),
            access_token=access_token,
            refresh_token=refresh_token,
            session_id=session_id,
            expires_at=validated.session.expires_at,
        )

    @auth_operation
    async def logout(self, session_id: str | None) -> AuthResult:
        """Invalidate one session. Logging out twice is not an error."""
        if session_id:
            await self.sessions.invalidate(session_id)
            logger.info("logout", principal_kind=self.kind.name)
        return AuthResult.ok(MSG_LOGOUT_OK)

    @auth_operation
    async def logout_all(self, identity_id: int) -> AuthResult:
        await self.sessions.invalidate_all(identity_id)
        return AuthResult.ok(MSG_LOGOUT_ALL_OK)

    async def authenticate_access_token(self, token: str) -> AuthContext:
        """
        Resolve an access token to the caller's context.

        Raises:
            InvalidTokenError: Malformed, tampered, wrong-type or wrong-kind token
            TokenExpiredError: Token past its expiry
            SessionExpiredError: The session behind the token is no longer valid
        """
        validated = await self._resolve_token(token, TokenType.ACCESS)
        return self._context(validated.identity, validated.session.id)

    async def authenticate_session(self, session_id: str) -> AuthContext:
        """
        Resolve an opaque session id (session cookie) to the caller's context.

        Raises:
            SessionExpiredError: Unknown, inactive or expired session
        """
        validated = await self.sessions.validate(session_id)
        if validated is None:
            raise SessionExpiredError()
        return self._context(validated.identity, validated.session.id)

    @auth_operation
    async def me(self, context: AuthContext) -> AuthResult:
        identity = await self._get_identity(context.identity_id)
        return AuthResult.ok(user=self._public(identity), session_id=context.session_id)

    @auth_operation
    async def list_sessions(self, context: AuthContext) -> AuthResult:
        """Active sessions of the caller, newest first; the caller's own is flagged current."""
        sessions = await self.sessions.list_active(context.identity_id)
        return AuthResult.ok(
            sessions=[
                SessionPublic(
                    created_at=s.created_at,
                    updated_at=s.updated_at,
                    expires_at=s.expires_at,
                    ip_address=s.ip_address,
                    user_agent=s.user_agent,
                    current=s.id == context.session_id,
                )
                for s in sessions
            ]
        )

    # ===== Registration and passwords =====

    @auth_operation
    async def register(
        self,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> AuthResult:
        """
        Create a user account and an email verification token.

        The password is checked before it is hashed; the raw verification
        token is returned on the result for delivery by email.
        """
        self._require_registration()
        email = normalize_email(email)

        validate_password_strength(password)
        if await self.credentials.email_exists(email):
            raise EmailExistsError()

        password_hash = await self.hasher.hash_async(password)
        identity: Any = await self.credentials.create(
            email,
            password_hash,
            first_name=first_name,
            last_name=last_name,
            password_changed_at=utcnow(),
        )
        verification_token = await self._create_email_verification(identity.id)

        logger.info("identity_registered", principal_kind=self.kind.name, identity_id=identity.id)
        return AuthResult.ok(
            MSG_REGISTER_OK,
            user=self._public(identity),
            verification_token=verification_token,
        )

    @auth_operation
    async def change_password(
        self,
        identity_id: int,
        current_password: str,
        new_password: str,
        current_session_id: str | None = None,
    ) -> AuthResult:
        """
        Replace the password after re-verifying the current one.

        Every other session of the identity is invalidated; the caller's own
        session (current_session_id) stays valid.
        """
        identity = await self._get_identity(identity_id)
        if not await self.hasher.verify_async(identity.password_hash, current_password):
            raise InvalidCredentialsError()

        validate_password_strength(new_password)
        password_hash = await self.hasher.hash_async(new_password)
        await self.credentials.update_password(identity_id, password_hash)
        revoked = await self.sessions.invalidate_all(identity_id, except_session_id=current_session_id)

        logger.info(
            "password_changed",
            principal_kind=self.kind.name,
            identity_id=identity_id,
            revoked_sessions=revoked,
        )
        return AuthResult.ok(MSG_PASSWORD_CHANGED)

    @auth_operation
    async def request_password_reset(self, email: str) -> AuthResult:
        """
        Issue a password reset token for an active account.

        The message is identical whether or not the email is registered; the
        raw token is only set on the result when one was created.
        """
        self._require_registration()
        identity: Any = await self.credentials.get_by_email(email)
        if identity is None or not identity.is_active:
            return AuthResult.ok(MSG_RESET_REQUESTED)

        token = generate_opaque_token()
        self.db.add(
            PasswordResets(
                user_id=identity.id,
                token_hash=hash_opaque_token(token),
                expires_at=utcnow() + timedelta(hours=settings.PASSWORD_RESET_EXPIRE_HOURS),
            )
        )
        await self.db.flush()

        logger.info("password_reset_requested", identity_id=identity.id)
        return AuthResult.ok(MSG_RESET_REQUESTED, reset_token=token)

    @auth_operation
    async def reset_password(self, token: str, new_password: str) -> AuthResult:
        """Set a new password from a reset token and sign out every session."""
        self._require_registration()
        token_hash = hash_opaque_token(token)
        now = utcnow()

        result = await self.db.execute(
            select(PasswordResets).where(
                PasswordResets.token_hash == token_hash,
                PasswordResets.used.is_(False),  # type: ignore[attr-defined]
                PasswordResets.expires_at > now,  # type: ignore[arg-type]
            )
        )
        reset = result.scalar_one_or_none()
        if reset is None:
            raise InvalidTokenError(MSG_INVALID_RESET_LINK)

        validate_password_strength(new_password)

        # Single-use even under concurrent requests with the same token
        claimed = await self.db.execute(
            update(PasswordResets)
            .where(PasswordResets.id == reset.id, PasswordResets.used.is_(False))  # type: ignore[arg-type, attr-defined]
            .values(used=True)
        )
        if claimed.rowcount == 0:  # type: ignore[attr-defined]
            raise InvalidTokenError(MSG_INVALID_RESET_LINK)

        password_hash = await self.hasher.hash_async(new_password)
        await self.credentials.update_password(reset.user_id, password_hash)
        await self.sessions.invalidate_all(reset.user_id)

        logger.info("password_reset_completed", identity_id=reset.user_id)
        return AuthResult.ok(MSG_RESET_OK)

    @auth_operation
    async def verify_email(self, token: str) -> AuthResult:
        self._require_registration()
        result = await self.db.execute(
            select(EmailVerifications).where(
                EmailVerifications.token_hash == hash_opaque_token(token),
                EmailVerifications.expires_at > utcnow(),  # type: ignore[arg-type]
            )
        )
        verification = result.scalar_one_or_none()
        if verification is None:
            raise InvalidTokenError(MSG_INVALID_RESET_LINK)

        await self.credentials.mark_email_verified(verification.user_id)
        await self.db.execute(
            delete(EmailVerifications).where(
                EmailVerifications.user_id == verification.user_id  # type: ignore[arg-type]
            )
        )
        logger.info("email_verified", identity_id=verification.user_id)
        return AuthResult.ok(MSG_EMAIL_VERIFIED)

    # ===== Two-factor =====

    @auth_operation
    async def setup_two_factor(self, identity_id: int) -> AuthResult:
        """Generate a new TOTP secret. It only takes effect once enabled with a valid code."""
        identity = await self._get_identity(identity_id)
        if identity.two_factor_enabled:
            raise InvalidCredentialsError(MSG_2FA_ALREADY_ENABLED)

        secret = two_factor.generate_secret()
        await self.credentials.set_two_factor(identity_id, enabled=False, secret=secret)
        return AuthResult.ok(
            MSG_2FA_SETUP,
            two_factor=TwoFactorSetup(
                secret=secret,
                provisioning_uri=two_factor.provisioning_uri(secret, identity.email),
            ),
        )

    @auth_operation
    async def enable_two_factor(self, identity_id: int, code: str) -> AuthResult:
        identity = await self._get_identity(identity_id)
        if identity.two_factor_enabled:
            raise InvalidCredentialsError(MSG_2FA_ALREADY_ENABLED)
        if not identity.two_factor_secret:
            raise InvalidCredentialsError(MSG_2FA_NOT_STARTED)
        if not two_factor.verify_code(identity.two_factor_secret, code):
            raise InvalidCredentialsError(MSG_INVALID_CODE)

        await self.credentials.set_two_factor(
            identity_id, enabled=True, secret=identity.two_factor_secret
        )
        logger.info("two_factor_enabled", principal_kind=self.kind.name, identity_id=identity_id)
        return AuthResult.ok(MSG_2FA_ENABLED)

    @auth_operation
    async def disable_two_factor(self, identity_id: int, password: str) -> AuthResult:
        """Turn off two-factor after re-verifying the password."""
        identity = await self._get_identity(identity_id)
        if not await self.hasher.verify_async(identity.password_hash, password):
            raise InvalidCredentialsError()

        await self.credentials.set_two_factor(identity_id, enabled=False, secret=None)
        logger.info("two_factor_disabled", principal_kind=self.kind.name, identity_id=identity_id)
        return AuthResult.ok(MSG_2FA_DISABLED)

    # ===== Account moderation =====

    @auth_operation
    async def deactivate(self, identity_id: int) -> AuthResult:
        """Disable an account and end all of its sessions."""
        if not await self.credentials.set_active(identity_id, False):
            raise InvalidCredentialsError(MSG_ACCOUNT_NOT_FOUND)
        await self.sessions.invalidate_all(identity_id)
        logger.info("identity_deactivated", principal_kind=self.kind.name, identity_id=identity_id)
        return AuthResult.ok(MSG_ACCOUNT_DEACTIVATED)

    @auth_operation
    async def activate(self, identity_id: int) -> AuthResult:
        if not await self.credentials.set_active(identity_id, True):
            raise InvalidCredentialsError(MSG_ACCOUNT_NOT_FOUND)
        logger.info("identity_activated", principal_kind=self.kind.name, identity_id=identity_id)
        return AuthResult.ok(MSG_ACCOUNT_ACTIVATED)

    @auth_operation
    async def delete_identity(self, identity_id: int) -> AuthResult:
        if not await self.credentials.delete(identity_id):
            raise InvalidCredentialsError(MSG_ACCOUNT_NOT_FOUND)
        return AuthResult.ok(MSG_ACCOUNT_DELETED)
