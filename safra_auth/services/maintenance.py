"""Periodic cleanup of expired sessions, old login attempts and dead one-time tokens."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from safra_auth.config import settings
from safra_auth.core.logging import get_logger
from safra_auth.core.principals import PRINCIPAL_KINDS
from safra_auth.models.one_time_token import EmailVerifications, PasswordResets
from safra_auth.services.rate_limit import LoginRateLimiter
from safra_auth.services.session_store import SessionStore
from safra_auth.utils import utcnow

logger = get_logger(__name__)


@dataclass
class SweepReport:
    """Rows deleted (or that would be deleted on a dry run) per table."""

    sessions: dict[str, int] = field(default_factory=dict)
    login_attempts: dict[str, int] = field(default_factory=dict)
    password_resets: int = 0
    email_verifications: int = 0

    @property
    def total(self) -> int:
        return (
            sum(self.sessions.values())
            + sum(self.login_attempts.values())
            + self.password_resets
            + self.email_verifications
        )


async def _purge(db: AsyncSession, model: type, condition: object, dry_run: bool) -> int:
    if dry_run:
        count = await db.scalar(select(func.count()).select_from(model).where(condition))  # type: ignore[arg-type]
        return int(count or 0)
    result = await db.execute(delete(model).where(condition))  # type: ignore[arg-type]
    return result.rowcount  # type: ignore[attr-defined, no-any-return]


async def sweep_expired(
    db: AsyncSession, now: datetime | None = None, dry_run: bool = False
) -> SweepReport:
    """
    Delete inactive/expired sessions of every principal kind, login attempts
    past the retention period and used or expired one-time tokens.

    Commits unless dry_run is set.
    """
    now = now or utcnow()
    attempts_cutoff = now - timedelta(days=settings.LOGIN_ATTEMPT_RETENTION_DAYS)
    report = SweepReport()

    for name, kind in PRINCIPAL_KINDS.items():
        report.sessions[name] = await SessionStore(db, kind).sweep(now=now, dry_run=dry_run)
        report.login_attempts[name] = await LoginRateLimiter(db, kind).prune(
            attempts_cutoff, dry_run=dry_run
        )

    report.password_resets = await _purge(
        db,
        PasswordResets,
        or_(PasswordResets.used.is_(True), PasswordResets.expires_at <= now),  # type: ignore[attr-defined, arg-type]
        dry_run,
    )
    report.email_verifications = await _purge(
        db, EmailVerifications, EmailVerifications.expires_at <= now, dry_run  # type: ignore[arg-type]
    )

    if not dry_run:
        await db.commit()

    logger.info(
        "sweep_completed",
        dry_run=dry_run,
        sessions=report.sessions,
        login_attempts=report.login_attempts,
        password_resets=report.password_resets,
        email_verifications=report.email_verifications,
    )
    return report
