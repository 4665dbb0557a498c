"""
SQLModel-based one-time token tables.

Password reset and email verification tokens are handed to the user once and
stored only as a SHA-256 hash.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKeyConstraint, Index
from sqlmodel import Field, SQLModel

from safra_auth.utils import utcnow


class PasswordResets(SQLModel, table=True):
    """Database table for password reset tokens."""

    __tablename__ = "password_resets"

    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            ondelete="CASCADE",
            onupdate="CASCADE",
            name="fk_password_resets_user_id",
        ),
        Index("idx_password_resets_token_hash", "token_hash", unique=True),
        Index("idx_password_resets_user_id", "user_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: int
    token_hash: str = Field(max_length=64)
    expires_at: datetime = Field(sa_type=DateTime)
    used: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class EmailVerifications(SQLModel, table=True):
    """Database table for email verification tokens."""

    __tablename__ = "email_verifications"

    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            ondelete="CASCADE",
            onupdate="CASCADE",
            name="fk_email_verifications_user_id",
        ),
        Index("idx_email_verifications_token_hash", "token_hash", unique=True),
        Index("idx_email_verifications_user_id", "user_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: int
    token_hash: str = Field(max_length=64)
    expires_at: datetime = Field(sa_type=DateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
