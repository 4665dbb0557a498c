"""
Server-side session store.

Sessions are keyed by an opaque random id (256 bits). Validity is evaluated
lazily at read time: an expired row that is still flagged active is marked
inactive when it is read, and rows are only deleted by sweep().
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from safra_auth.core.logging import get_logger
from safra_auth.core.principals import ClientInfo, PrincipalKind
from safra_auth.models.identity import CredentialedIdentity
from safra_auth.models.session import SessionBase
from safra_auth.utils import utcnow

logger = get_logger(__name__)


def generate_session_id() -> str:
    """Opaque, unguessable session id (32 random bytes, URL-safe)."""
    return secrets.token_urlsafe(32)


@dataclass(frozen=True)
class ValidatedSession:
    """A session that passed validation together with its owning identity."""

    session: SessionBase
    identity: CredentialedIdentity


class SessionStore:
    """Session persistence for one principal kind. Callers own the transaction."""

    def __init__(self, db: AsyncSession, kind: PrincipalKind) -> None:
        self.db = db
        self.kind = kind
        self.model: Any = kind.session_model
        self.identity_model: Any = kind.identity_model

    async def create(
        self, identity_id: int, client: ClientInfo, ttl: timedelta
    ) -> tuple[str, datetime]:
        """
        Persist a new active session.

        Returns:
            Tuple of (session_id, expires_at)
        """
        session_id = generate_session_id()
        now = utcnow()
        expires_at = now + ttl
        self.db.add(
            self.model(
                id=session_id,
                identity_id=identity_id,
                expires_at=expires_at,
                ip_address=client.ip_address[:45],
                user_agent=client.user_agent[:255],
                created_at=now,
                updated_at=now,
            )
        )
        await self.db.flush()
        logger.debug("session_created", principal_kind=self.kind.name, identity_id=identity_id)
        return session_id, expires_at

    async def get(self, session_id: str) -> SessionBase | None:
        result = await self.db.execute(
            select(self.model)
            .where(self.model.id == session_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def validate(self, session_id: str) -> ValidatedSession | None:
        """
        Return the session and its identity, or None.

        None is returned when the session is absent, inactive or expired, or
        when its identity is missing or deactivated. An expired session that
        is still flagged active is marked inactive here.
        """
        result = await self.db.execute(
            select(self.model, self.identity_model)
            .join(self.identity_model, self.identity_model.id == self.model.identity_id)
            .where(self.model.id == session_id)
            .execution_options(populate_existing=True)
        )
        row = result.first()
        if row is None:
            return None

        session, identity = row
        if not session.is_active:
            return None

        if session.expires_at <= utcnow():
            await self.invalidate(session_id)
            logger.debug("session_expired", principal_kind=self.kind.name, identity_id=identity.id)
            return None

        if not identity.is_active:
            return None

        return ValidatedSession(session=session, identity=identity)

    async def touch(self, session_id: str) -> None:
        """Record a token renewal on the session."""
        await self.db.execute(
            update(self.model)
            .where(self.model.id == session_id)
            .values(refresh_count=self.model.refresh_count + 1, updated_at=utcnow())
        )

    async def invalidate(self, session_id: str) -> None:
        """Flag a session inactive. Invalidating an inactive or unknown session is a no-op."""
        await self.db.execute(
            update(self.model)
            .where(self.model.id == session_id, self.model.is_active.is_(True))
            .values(is_active=False, updated_at=utcnow())
        )

    async def invalidate_all(self, identity_id: int, except_session_id: str | None = None) -> int:
        """
        Invalidate every active session of an identity.

        Args:
            identity_id: Owner of the sessions
            except_session_id: Optional session to keep (e.g. the caller's own)

        Returns:
            Number of sessions invalidated
        """
        stmt = update(self.model).where(
            self.model.identity_id == identity_id, self.model.is_active.is_(True)
        )
        if except_session_id is not None:
            stmt = stmt.where(self.model.id != except_session_id)
        result = await self.db.execute(stmt.values(is_active=False, updated_at=utcnow()))
        count = result.rowcount  # type: ignore[attr-defined]
        logger.info(
            "sessions_invalidated",
            principal_kind=self.kind.name,
            identity_id=identity_id,
            count=count,
        )
        return count  # type: ignore[no-any-return]

    async def list_active(self, identity_id: int) -> list[SessionBase]:
        result = await self.db.execute(
            select(self.model)
            .where(
                self.model.identity_id == identity_id,
                self.model.is_active.is_(True),
                self.model.expires_at > utcnow(),
            )
            .order_by(self.model.created_at.desc())
        )
        return list(result.scalars().all())

    async def sweep(self, now: datetime | None = None, dry_run: bool = False) -> int:
        """
        Delete inactive and expired sessions.

        Returns:
            Number of sessions deleted (or that would be deleted with dry_run)
        """
        now = now or utcnow()
        condition = or_(self.model.is_active.is_(False), self.model.expires_at <= now)

        if dry_run:
            result = await self.db.execute(select(self.model.id).where(condition))
            return len(result.all())

        result = await self.db.execute(delete(self.model).where(condition))
        deleted = result.rowcount  # type: ignore[attr-defined]
        if deleted:
            logger.info("sessions_swept", principal_kind=self.kind.name, deleted_count=deleted)
        return deleted  # type: ignore[no-any-return]
