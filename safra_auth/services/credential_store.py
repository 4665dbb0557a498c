"""Credential store: identity lookups and atomic single-row updates."""

from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from safra_auth.core.errors import EmailExistsError
from safra_auth.core.logging import get_logger
from safra_auth.core.principals import PrincipalKind
from safra_auth.models.identity import CredentialedIdentity
from safra_auth.utils import normalize_email, utcnow

logger = get_logger(__name__)


class CredentialStore:
    """
    Access to the identity table of one principal kind.

    Every mutation is a single UPDATE statement so concurrent requests never
    race on a read-modify-write of the same row. Callers own the transaction.
    """

    def __init__(self, db: AsyncSession, kind: PrincipalKind) -> None:
        self.db = db
        self.kind = kind
        self.model: Any = kind.identity_model

    async def get_by_email(self, email: str) -> CredentialedIdentity | None:
        # populate_existing: bulk UPDATEs may have changed rows already in the session
        result = await self.db.execute(
            select(self.model)
            .where(self.model.email == normalize_email(email))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, identity_id: int) -> CredentialedIdentity | None:
        result = await self.db.execute(
            select(self.model)
            .where(self.model.id == identity_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        result = await self.db.execute(
            select(self.model.id).where(self.model.email == normalize_email(email))
        )
        return result.first() is not None

    async def create(self, email: str, password_hash: str, **fields: Any) -> CredentialedIdentity:
        """
        Insert a new identity.

        Raises:
            EmailExistsError: If the normalized email is already taken
        """
        fields.setdefault("role", self.kind.default_role.value)
        identity = self.model(email=normalize_email(email), password_hash=password_hash, **fields)
        self.db.add(identity)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise EmailExistsError() from e
        await self.db.refresh(identity)
        return identity

    async def _update(self, identity_id: int, **values: Any) -> int:
        values.setdefault("updated_at", utcnow())
        result = await self.db.execute(
            update(self.model)
            .where(self.model.id == identity_id)
            .values(**values)
        )
        return result.rowcount  # type: ignore[attr-defined, no-any-return]

    async def record_failed_login(self, identity_id: int) -> None:
        """Atomically increment the failed attempt counter."""
        await self._update(identity_id, failed_login_attempts=self.model.failed_login_attempts + 1)

    async def mark_locked(self, identity_id: int, until: datetime) -> None:
        await self._update(identity_id, locked_until=until)

    async def record_successful_login(self, identity_id: int, ip_address: str | None) -> None:
        """Reset lockout counters and stamp the login time."""
        now = utcnow()
        await self._update(
            identity_id,
            failed_login_attempts=0,
            locked_until=None,
            last_login=now,
            last_ip_address=ip_address,
            updated_at=now,
        )

    async def update_password(self, identity_id: int, password_hash: str) -> None:
        now = utcnow()
        await self._update(
            identity_id,
            password_hash=password_hash,
            password_changed_at=now,
            failed_login_attempts=0,
            locked_until=None,
            updated_at=now,
        )

    async def set_active(self, identity_id: int, active: bool) -> bool:
        return await self._update(identity_id, is_active=active) > 0

    async def set_two_factor(self, identity_id: int, *, enabled: bool, secret: str | None) -> None:
        await self._update(identity_id, two_factor_enabled=enabled, two_factor_secret=secret)

    async def mark_email_verified(self, identity_id: int) -> None:
        await self._update(identity_id, email_verified=True)

    async def delete(self, identity_id: int) -> bool:
        """
        Delete an identity together with its sessions.

        Sessions are removed explicitly as well as through the FK cascade so
        no session can outlive its identity on backends without FK enforcement.
        """
        session_model: Any = self.kind.session_model
        await self.db.execute(delete(session_model).where(session_model.identity_id == identity_id))
        result = await self.db.execute(delete(self.model).where(self.model.id == identity_id))
        deleted = result.rowcount > 0  # type: ignore[attr-defined]
        if deleted:
            logger.info("identity_deleted", principal_kind=self.kind.name, identity_id=identity_id)
        return deleted
