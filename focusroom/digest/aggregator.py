from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from focusroom.core.errors import AggregationFailure
from focusroom.core.logging import get_logger
from focusroom.models.content import Event, Feedback, Poll, Project, Spotlight, Task

logger = get_logger(__name__)


@dataclass
class ActivitySet:
    """Content gathered for one digest window.

    Events, polls, spotlights and feedback are limited to the window.
    Projects and tasks carry no creation timestamp, so they are a capped
    sample regardless of the window.
    """

    since: datetime
    events: list[Event] = field(default_factory=list)
    polls: list[Poll] = field(default_factory=list)
    spotlights: list[Spotlight] = field(default_factory=list)
    feedback: list[Feedback] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)

    @property
    def has_activity(self) -> bool:
        return any(
            (self.events, self.polls, self.spotlights, self.feedback, self.projects, self.tasks)
        )

    def counts(self) -> dict[str, int]:
        return {
            "projects": len(self.projects),
            "tasks": len(self.tasks),
            "events": len(self.events),
            "polls": len(self.polls),
            "spotlights": len(self.spotlights),
            "feedback": len(self.feedback),
        }

    def summary(self) -> str:
        """One-line description stored on the DigestRun."""
        return (
            f"{len(self.projects)} projects, {len(self.tasks)} tasks, "
            f"{len(self.events)} events, {len(self.polls)} polls, "
            f"{len(self.spotlights)} spotlights, {len(self.feedback)} feedback items"
        )


async def _load(source: str, query: Callable[[], Awaitable[Sequence[Any]]]) -> list[Any]:
    try:
        return list(await query())
    except Exception as e:
        logger.bind(source=source, error=str(e)).error("activity_source_failed")
        raise AggregationFailure(source, e) from e


async def collect(db: AsyncSession, since: datetime, stream_cap: int = 10) -> ActivitySet:
    """
    Gather the activity a digest reports on.

    Any failing source fails the whole collection; a digest is never built
    from a partial view.

    Args:
        db: Database session
        since: Window start; timestamped streams include rows created at or after it
        stream_cap: Maximum number of projects and of tasks

    Returns:
        ActivitySet for the window

    Raises:
        AggregationFailure: A source query failed
    """

    def recent(model: Any) -> Callable[[], Awaitable[Sequence[Any]]]:
        async def query() -> Sequence[Any]:
            result = await db.execute(
                select(model).where(model.created_at >= since).order_by(model.created_at.desc())
            )
            return result.scalars().all()

        return query

    def capped(model: Any) -> Callable[[], Awaitable[Sequence[Any]]]:
        async def query() -> Sequence[Any]:
            result = await db.execute(select(model).order_by(model.id.desc()).limit(stream_cap))
            return result.scalars().all()

        return query

    # One session cannot run queries concurrently, so sources load in turn
    activity = ActivitySet(
        since=since,
        events=await _load("events", recent(Event)),
        polls=await _load("polls", recent(Poll)),
        spotlights=await _load("spotlights", recent(Spotlight)),
        feedback=await _load("feedback", recent(Feedback)),
        projects=await _load("projects", capped(Project)),
        tasks=await _load("tasks", capped(Task)),
    )

    logger.bind(since=since.isoformat(), **activity.counts()).info("activity_collected")
    return activity
