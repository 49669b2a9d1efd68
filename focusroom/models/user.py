from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from focusroom.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """Community member mirrored from the identity provider.

    The primary key is the provider's user id, so actor ids on engagement
    rows are the same strings the provider hands out.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255), index=True)
    role: Mapped[str] = mapped_column(String(20), default="member")

    # Relationships
    sessions: Mapped[list[Session]] = relationship(back_populates="user", lazy="selectin")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self) -> str:
        return f"<User {self.id}>"


class Session(Base, TimestampMixin):
    """Cookie session issued by the identity provider."""

    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    expires_at: Mapped[datetime] = mapped_column()

    # Relationships
    user: Mapped[User] = relationship(back_populates="sessions", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Session {self.id}>"
