"""
SQLModel-based identity models with inheritance for security

This module defines the two credentialed identity tables. The inheritance
structure is:

IdentityBase (shared public fields)
    ├─> CredentialedIdentity (adds authentication and lockout fields)
    │       ├─> Users (public site accounts, "users" table)
    │       └─> AdminUsers (staff accounts, "admin_users" table)
    └─> IdentityPublic (API schema, defined in safra_auth/schemas)

Both tables share every authentication column so the same auth state machine
can run against either of them.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel

from safra_auth.config import Role
from safra_auth.utils import utcnow


class IdentityBase(SQLModel):
    """
    Base model with shared public fields for identities.

    These fields are safe to expose via the API.
    """

    # Contact (always stored normalized: trimmed + lowercased)
    email: str = Field(max_length=255)

    # Profile
    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)

    # Access control
    role: str = Field(default=Role.USER.value, max_length=50)
    is_active: bool = Field(default=True)


class CredentialedIdentity(IdentityBase):
    """
    Shared authentication columns.

    Internal/sensitive fields (should NOT be exposed via public API):
    - password_hash, two_factor_secret: highly sensitive
    - failed_login_attempts, locked_until, last_ip_address: internal tracking
    """

    # Authentication (highly sensitive - never expose)
    password_hash: str = Field(max_length=255)
    password_changed_at: datetime | None = Field(default=None, sa_type=DateTime)

    # Account lockout. Decisions come from login_attempts; these mirror it for moderation views
    failed_login_attempts: int = Field(default=0)
    locked_until: datetime | None = Field(default=None, sa_type=DateTime)

    # Two-factor authentication (TOTP)
    two_factor_enabled: bool = Field(default=False)
    two_factor_secret: str | None = Field(default=None, max_length=64)

    # Activity
    last_login: datetime | None = Field(default=None, sa_type=DateTime)
    last_ip_address: str | None = Field(default=None, max_length=45)  # Supports IPv6

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Users(CredentialedIdentity, table=True):
    """Database table for public site accounts (readers, advertisers, reviewers)."""

    __tablename__ = "users"

    __table_args__ = (Index("idx_users_email", "email", unique=True),)

    # Primary key
    id: int | None = Field(default=None, primary_key=True)

    # Email verification
    email_verified: bool = Field(default=False)

    # Optional profile data
    phone: str | None = Field(default=None, max_length=20)
    province_id: str | None = Field(default=None, max_length=50)


class AdminUsers(CredentialedIdentity, table=True):
    """Database table for staff accounts with their own role space."""

    __tablename__ = "admin_users"

    __table_args__ = (
        Index("idx_admin_users_email", "email", unique=True),
        Index("idx_admin_users_username", "username", unique=True),
    )

    # Primary key
    id: int | None = Field(default=None, primary_key=True)

    username: str = Field(max_length=100)
    role: str = Field(default=Role.ADMIN.value, max_length=50)
