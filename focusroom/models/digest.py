"""Digest run history and the lease that serializes digest cycles."""

import uuid
from datetime import datetime

from sqlalchemy import Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from focusroom.core.datetime_utils import utc_now
from focusroom.models.base import Base


class DigestRun(Base):
    """One completed digest cycle.

    Append-only. The newest row by ``sent_at`` is the only scheduling
    memory: it decides eligibility and the next cycle's cutoff.
    """

    __tablename__ = "digest_runs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    sent_at: Mapped[datetime] = mapped_column(default=utc_now, index=True)
    sent_by: Mapped[str] = mapped_column(String(64), default="system")
    trigger: Mapped[str] = mapped_column(String(20), default="scheduler")
    cutoff: Mapped[datetime | None] = mapped_column()
    recipient_count: Mapped[int] = mapped_column(Integer, default=0)
    content_summary: Mapped[str] = mapped_column(Text, default="")
    emails_sent: Mapped[int] = mapped_column(Integer, default=0)
    emails_failed: Mapped[int] = mapped_column(Integer, default=0)

    def __repr__(self) -> str:
        return f"<DigestRun {self.sent_at} sent={self.emails_sent} failed={self.emails_failed}>"


class DigestLease(Base):
    """Single-row mutual exclusion for a named job.

    A cycle owns the lease while ``expires_at`` is in the future and
    ``holder`` is its token. Expiry bounds how long a crashed holder can
    block the schedule.
    """

    __tablename__ = "digest_leases"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    holder: Mapped[str] = mapped_column(String(64))
    acquired_at: Mapped[datetime] = mapped_column()
    expires_at: Mapped[datetime] = mapped_column()

    def __repr__(self) -> str:
        return f"<DigestLease {self.name} holder={self.holder} until={self.expires_at}>"
