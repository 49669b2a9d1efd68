"""Identity provider boundary.

Users and sessions are owned by an external provider that mirrors them into
the ``users`` and ``sessions`` tables. Engagement code only ever sees an
``Actor`` snapshot, never a live ORM row.
"""

import uuid
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from focusroom.core.datetime_utils import is_expired
from focusroom.models.user import Session, User


@dataclass(frozen=True)
class Actor:
    """The authenticated member behind a request or a digest trigger."""

    id: str
    email: str | None = None
    name: str | None = None
    role: str = "member"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, email=user.email, name=user.name, role=user.role)


@dataclass(frozen=True)
class Recipient:
    id: str
    email: str
    name: str | None = None


class IdentityProvider(Protocol):
    async def resolve_session(self, session_id: str) -> Actor | None: ...

    async def list_recipients(self, limit: int) -> list[Recipient]: ...


class DatabaseIdentityProvider:
    """Reads the provider's mirrored users/sessions tables."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def resolve_session(self, session_id: str) -> Actor | None:
        try:
            session_uuid = uuid.UUID(session_id)
        except ValueError:
            return None

        result = await self.db.execute(select(Session).where(Session.id == session_uuid))
        session = result.scalar_one_or_none()
        if session is None or is_expired(session.expires_at):
            return None
        return Actor.from_user(session.user)

    async def list_recipients(self, limit: int) -> list[Recipient]:
        """Users with a known email address, oldest members first."""
        result = await self.db.execute(
            select(User.id, User.email, User.name)
            .where(User.email.is_not(None), User.email != "")
            .order_by(User.created_at, User.id)
            .limit(limit)
        )
        return [Recipient(id=row.id, email=row.email, name=row.name) for row in result.all()]
