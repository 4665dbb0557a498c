"""
SQLModel tables for the authentication core.

Importing this package registers every table on SQLModel.metadata.
"""

from safra_auth.models.identity import AdminUsers, CredentialedIdentity, IdentityBase, Users
from safra_auth.models.login_attempt import LoginAttempts
from safra_auth.models.one_time_token import EmailVerifications, PasswordResets
from safra_auth.models.session import AdminSessions, SessionBase, UserSessions

__all__ = [
    # Identities
    "IdentityBase",
    "CredentialedIdentity",
    "Users",
    "AdminUsers",
    # Sessions
    "SessionBase",
    "UserSessions",
    "AdminSessions",
    # Rate limiting
    "LoginAttempts",
    # One-time tokens
    "PasswordResets",
    "EmailVerifications",
]
