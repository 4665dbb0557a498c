"""
Principal kinds and the authenticated request context.

A principal kind bundles everything that differs between public users and
admins: the identity table, the session table, the role space and the
lifetimes. The auth state machine is written once and parameterized by it.
"""

from dataclasses import dataclass
from datetime import timedelta

from safra_auth.config import Role, settings
from safra_auth.models.identity import AdminUsers, CredentialedIdentity, Users
from safra_auth.models.session import AdminSessions, SessionBase, UserSessions


@dataclass(frozen=True)
class PrincipalKind:
    """Category of identity and the tables/role space it maps to."""

    name: str
    identity_model: type[CredentialedIdentity]
    session_model: type[SessionBase]
    roles: frozenset[Role]
    default_role: Role
    supports_registration: bool

    @property
    def session_cookie_name(self) -> str:
        if self.name == "admin":
            return settings.ADMIN_SESSION_COOKIE_NAME
        return settings.SESSION_COOKIE_NAME

    @property
    def access_cookie_name(self) -> str:
        return "admin_access_token" if self.name == "admin" else "access_token"

    @property
    def refresh_cookie_name(self) -> str:
        return "admin_refresh_token" if self.name == "admin" else "refresh_token"

    def session_ttl(self, remember_me: bool = False) -> timedelta:
        if self.name == "admin":
            return timedelta(hours=settings.ADMIN_SESSION_EXPIRE_HOURS)
        if remember_me:
            return timedelta(days=settings.REMEMBER_ME_SESSION_EXPIRE_DAYS)
        return timedelta(days=settings.SESSION_EXPIRE_DAYS)

    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    def refresh_token_ttl(self) -> timedelta:
        if self.name == "admin":
            return timedelta(hours=settings.ADMIN_REFRESH_TOKEN_EXPIRE_HOURS)
        return timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)


USER = PrincipalKind(
    name="user",
    identity_model=Users,
    session_model=UserSessions,
    roles=frozenset({Role.USER, Role.EDITOR}),
    default_role=Role.USER,
    supports_registration=True,
)

ADMIN = PrincipalKind(
    name="admin",
    identity_model=AdminUsers,
    session_model=AdminSessions,
    roles=frozenset({Role.EDITOR, Role.MODERATOR, Role.ADMIN, Role.SUPER_ADMIN}),
    default_role=Role.ADMIN,
    supports_registration=False,
)

PRINCIPAL_KINDS: dict[str, PrincipalKind] = {USER.name: USER, ADMIN.name: ADMIN}


@dataclass(frozen=True)
class ClientInfo:
    """Metadata about the client issuing a request."""

    ip_address: str = "unknown"
    user_agent: str = "unknown"


@dataclass(frozen=True)
class AuthContext:
    """
    Authenticated identity threaded explicitly through the call chain.

    Built by AuthService after a token or session id has been validated
    against the session store.
    """

    identity_id: int
    email: str
    role: str
    principal_kind: str
    session_id: str

    def has_role(self, *roles: Role | str) -> bool:
        return self.role in {r.value if isinstance(r, Role) else r for r in roles}
