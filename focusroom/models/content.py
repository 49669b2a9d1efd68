"""Community content read by the digest aggregator and targeted by engagement."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from focusroom.models.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    """Community event members can RSVP to."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str | None] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(500))
    start_at: Mapped[datetime | None] = mapped_column()
    end_at: Mapped[datetime | None] = mapped_column()
    created_by: Mapped[str | None] = mapped_column(String(64))

    def __repr__(self) -> str:
        return f"<Event {self.id}: {self.title}>"


class Poll(Base, TimestampMixin):
    """Poll with a fixed set of options."""

    __tablename__ = "polls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question: Mapped[str | None] = mapped_column(String(500))
    ends_at: Mapped[datetime | None] = mapped_column()
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[str | None] = mapped_column(String(64))

    # Relationships
    options: Mapped[list[PollOption]] = relationship(
        back_populates="poll", lazy="selectin", order_by="PollOption.id"
    )

    def __repr__(self) -> str:
        return f"<Poll {self.id}: {self.question}>"


class PollOption(Base):
    """Poll option with a denormalized vote counter.

    ``votes`` must equal the number of PollVote rows pointing at the option;
    it only moves through an atomic increment committed with the vote.
    """

    __tablename__ = "poll_options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    poll_id: Mapped[int] = mapped_column(ForeignKey("polls.id", ondelete="CASCADE"), index=True)
    text: Mapped[str] = mapped_column(String(200))
    votes: Mapped[int] = mapped_column(Integer, default=0)

    # Relationships
    poll: Mapped[Poll] = relationship(back_populates="options")

    def __repr__(self) -> str:
        return f"<PollOption {self.id} poll={self.poll_id} votes={self.votes}>"


class Spotlight(Base, TimestampMixin):
    """Featured artist, venue or member."""

    __tablename__ = "spotlights"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str | None] = mapped_column(String(50))
    name: Mapped[str | None] = mapped_column(String(255))
    title: Mapped[str | None] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text)
    is_current: Mapped[bool] = mapped_column(Boolean, default=False)
    created_by: Mapped[str | None] = mapped_column(String(64))


class Feedback(Base, TimestampMixin):
    """User feedback submitted from the app."""

    __tablename__ = "feedback"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str | None] = mapped_column(String(50), default="open")
    submitted_by: Mapped[str | None] = mapped_column(String(64))


class Project(Base):
    """Collaborative project. Carries no creation timestamp."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str | None] = mapped_column(String(50))
    priority: Mapped[str | None] = mapped_column(String(50))

    # Relationships
    tasks: Mapped[list[Task]] = relationship(back_populates="project")


class Task(Base):
    """Project task. Carries no creation timestamp."""

    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str | None] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str | None] = mapped_column(String(50))
    priority: Mapped[str | None] = mapped_column(String(50))
    project_id: Mapped[int | None] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), index=True
    )

    # Relationships
    project: Mapped[Project | None] = relationship(back_populates="tasks")
