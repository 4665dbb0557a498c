"""
Login rate limiting backed by the shared login_attempts table.

Every instance of the service reads and writes the same table, so a lockout
holds no matter which instance an attacker talks to. Lockouts are computed
from the attempt history inside a trailing window and lift by themselves as
the window moves; a success for a key clears the failures recorded before it.
"""

import math
from datetime import datetime, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from safra_auth.config import settings
from safra_auth.core.errors import RateLimitedError
from safra_auth.core.logging import get_logger
from safra_auth.core.principals import PrincipalKind
from safra_auth.models.login_attempt import LoginAttempts
from safra_auth.utils import normalize_email, utcnow

logger = get_logger(__name__)


class LoginRateLimiter:
    """
    Failed-attempt counter per email and per source IP.

    A key is blocked when the failures recorded for it inside the trailing
    window, after its most recent success, reach max_attempts.
    """

    def __init__(
        self,
        db: AsyncSession,
        kind: PrincipalKind,
        max_attempts: int | None = None,
        window: timedelta | None = None,
    ) -> None:
        self.db = db
        self.kind = kind
        self.max_attempts = max_attempts or settings.MAX_LOGIN_ATTEMPTS
        self.window = window or timedelta(minutes=settings.LOGIN_ATTEMPT_WINDOW_MINUTES)

    async def record_attempt(self, email: str | None, ip_address: str, success: bool) -> None:
        """Append an attempt record."""
        self.db.add(
            LoginAttempts(
                principal_kind=self.kind.name,
                email=normalize_email(email) if email else None,
                ip_address=ip_address[:45],
                success=success,
                attempted_at=utcnow(),
            )
        )
        await self.db.flush()

    async def _recent_failures(self, column: str, value: str, now: datetime) -> list[datetime]:
        """Failure timestamps for a key that still count toward a lockout, oldest first."""
        key = getattr(LoginAttempts, column)
        window_start = now - self.window

        last_success = await self.db.scalar(
            select(func.max(LoginAttempts.attempted_at)).where(
                LoginAttempts.principal_kind == self.kind.name,
                key == value,
                LoginAttempts.success.is_(True),  # type: ignore[attr-defined]
                LoginAttempts.attempted_at >= window_start,
            )
        )

        query = select(LoginAttempts.attempted_at).where(
            LoginAttempts.principal_kind == self.kind.name,
            key == value,
            LoginAttempts.success.is_(False),  # type: ignore[attr-defined]
        )
        if last_success is not None:
            query = query.where(LoginAttempts.attempted_at > last_success)
        else:
            query = query.where(LoginAttempts.attempted_at >= window_start)

        result = await self.db.execute(query.order_by(LoginAttempts.attempted_at))
        return list(result.scalars().all())

    def _keys(self, email: str | None, ip_address: str | None) -> list[tuple[str, str]]:
        keys = []
        if email:
            keys.append(("email", normalize_email(email)))
        if ip_address:
            keys.append(("ip_address", ip_address))
        return keys

    async def failure_count(self, email: str | None = None, ip_address: str | None = None) -> int:
        """Highest counted failure total across the given keys."""
        now = utcnow()
        counts = [
            len(await self._recent_failures(column, value, now))
            for column, value in self._keys(email, ip_address)
        ]
        return max(counts, default=0)

    async def is_blocked(self, email: str | None = None, ip_address: str | None = None) -> bool:
        """True iff any of the given keys has reached the failure threshold."""
        return await self.failure_count(email, ip_address) >= self.max_attempts

    async def retry_after(self, email: str | None = None, ip_address: str | None = None) -> int:
        """
        Coarse hint, in seconds, until every given key is unblocked.

        Rounded up to whole minutes so the exact lockout end is not revealed.
        """
        now = utcnow()
        remaining = 0.0
        for column, value in self._keys(email, ip_address):
            failures = await self._recent_failures(column, value, now)
            if len(failures) < self.max_attempts:
                continue
            # Unblocked once enough of the oldest failures leave the window
            releasing = failures[len(failures) - self.max_attempts]
            remaining = max(remaining, (releasing + self.window - now).total_seconds())
        return int(math.ceil(remaining / 60) * 60) if remaining > 0 else 0

    async def check(self, email: str | None, ip_address: str | None) -> None:
        """
        Raise if the email or IP is currently blocked.

        Raises:
            RateLimitedError: With a retry-after hint
        """
        if await self.is_blocked(email, ip_address):
            retry_after = await self.retry_after(email, ip_address)
            logger.warning(
                "login_rate_limited",
                principal_kind=self.kind.name,
                ip_address=ip_address,
                retry_after=retry_after,
            )
            raise RateLimitedError(retry_after=retry_after)

    async def prune(self, older_than: datetime, dry_run: bool = False) -> int:
        """Delete attempt rows older than the given time (maintenance job)."""
        condition = (LoginAttempts.principal_kind == self.kind.name) & (
            LoginAttempts.attempted_at < older_than
        )
        if dry_run:
            count = await self.db.scalar(select(func.count()).select_from(LoginAttempts).where(condition))
            return int(count or 0)
        result = await self.db.execute(delete(LoginAttempts).where(condition))
        return result.rowcount  # type: ignore[attr-defined, no-any-return]
