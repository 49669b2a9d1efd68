"""Engagement ledger: likes, comments, poll votes, RSVPs and the activity log.

Uniqueness lives in the schema. The guard relies on these constraints as
the final arbiter under concurrent writes:

- likes:      one row per (actor_id, target_id, target_type)
- poll_votes: one row per (poll_id, actor_id)
- rsvps:      one row per (event_id, actor_id)
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import JSON, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from focusroom.core.datetime_utils import utc_now
from focusroom.models.base import Base, TimestampMixin, enum_values


class TargetType(str, enum.Enum):
    """Content kinds an engagement can point at."""

    EVENT = "event"
    POLL = "poll"
    SPOTLIGHT = "spotlight"


class RSVPStatus(str, enum.Enum):
    ATTENDING = "attending"
    MAYBE = "maybe"
    DECLINED = "declined"


class EngagementKind(str, enum.Enum):
    """Kinds of interaction an actor can have with a target."""

    LIKE = "like"
    COMMENT = "comment"
    VOTE = "vote"
    RSVP = "rsvp"


target_type_enum = Enum(TargetType, values_callable=enum_values, name="targettype")
rsvp_status_enum = Enum(RSVPStatus, values_callable=enum_values, name="rsvpstatus")


class Like(Base, TimestampMixin):
    """An active like. Toggling off hard-deletes the row."""

    __tablename__ = "likes"
    __table_args__ = (
        UniqueConstraint("actor_id", "target_id", "target_type", name="uq_like_actor_target"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[str] = mapped_column(String(64), index=True)
    target_id: Mapped[int] = mapped_column(Integer)
    target_type: Mapped[TargetType] = mapped_column(target_type_enum)

    def __repr__(self) -> str:
        return f"<Like {self.actor_id} -> {self.target_type.value}:{self.target_id}>"


class Comment(Base, TimestampMixin):
    """A comment. Many per actor per target."""

    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[str] = mapped_column(String(64), index=True)
    target_id: Mapped[int] = mapped_column(Integer, index=True)
    target_type: Mapped[TargetType] = mapped_column(target_type_enum)
    content: Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime | None] = mapped_column(default=None)

    def __repr__(self) -> str:
        return f"<Comment {self.id} by {self.actor_id}>"


class PollVote(Base, TimestampMixin):
    """A cast vote. Immutable once inserted."""

    __tablename__ = "poll_votes"
    __table_args__ = (UniqueConstraint("poll_id", "actor_id", name="uq_poll_vote_actor"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    poll_id: Mapped[int] = mapped_column(ForeignKey("polls.id", ondelete="CASCADE"), index=True)
    option_id: Mapped[int] = mapped_column(
        ForeignKey("poll_options.id", ondelete="CASCADE"), index=True
    )
    actor_id: Mapped[str] = mapped_column(String(64), index=True)

    def __repr__(self) -> str:
        return f"<PollVote poll={self.poll_id} option={self.option_id} actor={self.actor_id}>"


class RSVP(Base, TimestampMixin):
    """An actor's attendance answer for an event, updated in place."""

    __tablename__ = "rsvps"
    __table_args__ = (UniqueConstraint("event_id", "actor_id", name="uq_rsvp_event_actor"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), index=True)
    actor_id: Mapped[str] = mapped_column(String(64), index=True)
    status: Mapped[RSVPStatus] = mapped_column(rsvp_status_enum)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now)

    def __repr__(self) -> str:
        return f"<RSVP event={self.event_id} actor={self.actor_id} {self.status.value}>"


class ActivityRecord(Base, TimestampMixin):
    """Activity feed entry written alongside each successful engagement."""

    __tablename__ = "activity_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[str | None] = mapped_column(String(64), index=True)
    action: Mapped[str] = mapped_column(String(100), index=True)
    target_id: Mapped[int | None] = mapped_column(Integer)
    target_type: Mapped[str | None] = mapped_column(String(20))
    details: Mapped[str | None] = mapped_column(Text)
    metadata_json: Mapped[dict | None] = mapped_column(JSON, default=dict)

    def __repr__(self) -> str:
        return f"<ActivityRecord {self.action} by {self.actor_id}>"
