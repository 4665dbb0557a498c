"""
SQLModel-based session models.

A session is the server-side record behind an opaque session id. It is valid
iff is_active is true and the current time is before expires_at; once it stops
being valid it never becomes valid again. Expired rows are flagged inactive on
read and deleted later by the sweep job.

SessionBase (shared columns)
    ├─> UserSessions ("sessions" table, FK users.id)
    └─> AdminSessions ("admin_sessions" table, FK admin_users.id)
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKeyConstraint, Index
from sqlmodel import Field, SQLModel

from safra_auth.utils import utcnow


class SessionBase(SQLModel):
    """Columns shared by user and admin sessions."""

    # Opaque session id (secrets.token_urlsafe(32) - highly sensitive)
    id: str = Field(primary_key=True, max_length=64)

    # Owning identity
    identity_id: int

    # Lifetime
    expires_at: datetime = Field(sa_type=DateTime)
    is_active: bool = Field(default=True)
    refresh_count: int = Field(default=0)

    # Issuing client metadata
    ip_address: str | None = Field(default=None, max_length=45)  # Supports IPv6
    user_agent: str | None = Field(default=None, max_length=255)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class UserSessions(SessionBase, table=True):
    """Database table for public user sessions."""

    __tablename__ = "sessions"

    __table_args__ = (
        ForeignKeyConstraint(
            ["identity_id"],
            ["users.id"],
            ondelete="CASCADE",
            onupdate="CASCADE",
            name="fk_sessions_identity_id",
        ),
        Index("idx_sessions_identity_id", "identity_id"),
        Index("idx_sessions_expires_at", "expires_at"),
    )


class AdminSessions(SessionBase, table=True):
    """Database table for admin sessions."""

    __tablename__ = "admin_sessions"

    __table_args__ = (
        ForeignKeyConstraint(
            ["identity_id"],
            ["admin_users.id"],
            ondelete="CASCADE",
            onupdate="CASCADE",
            name="fk_admin_sessions_identity_id",
        ),
        Index("idx_admin_sessions_identity_id", "identity_id"),
        Index("idx_admin_sessions_expires_at", "expires_at"),
    )
