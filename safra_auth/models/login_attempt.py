"""
SQLModel-based login attempt log.

Rows are only ever appended and counted: the rate limiter derives lockouts
from the failures recorded inside a trailing window, so a lockout lifts by
itself once the window moves past it.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel

from safra_auth.utils import utcnow


class LoginAttempts(SQLModel, table=True):
    """Database table for login attempts (user and admin)."""

    __tablename__ = "login_attempts"

    __table_args__ = (
        Index("idx_login_attempts_email", "principal_kind", "email", "attempted_at"),
        Index("idx_login_attempts_ip", "principal_kind", "ip_address", "attempted_at"),
    )

    id: int | None = Field(default=None, primary_key=True)

    # "user" or "admin"
    principal_kind: str = Field(max_length=20)

    email: str | None = Field(default=None, max_length=255)
    ip_address: str = Field(max_length=45)
    success: bool = Field(default=False)
    attempted_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
