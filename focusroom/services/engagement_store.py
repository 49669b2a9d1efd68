"""Engagement store: typed reads and non-unique writes over the ledger.

Comments and the activity log live here. Writes that must respect a
per-actor uniqueness rule (likes, votes, RSVPs) go through
``focusroom.services.uniqueness_guard``.
"""

from dataclasses import dataclass
from typing import Any

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from focusroom.core.database import unit_of_work
from focusroom.core.datetime_utils import utc_now
from focusroom.core.errors import NotCommentAuthor, TargetNotFound
from focusroom.core.logging import get_logger
from focusroom.models.content import Event, Poll, Spotlight
from focusroom.models.engagement import (
    RSVP,
    ActivityRecord,
    Comment,
    EngagementKind,
    Like,
    PollVote,
    TargetType,
)

logger = get_logger(__name__)

TARGET_MODELS = {
    TargetType.EVENT: Event,
    TargetType.POLL: Poll,
    TargetType.SPOTLIGHT: Spotlight,
}


@dataclass
class EngagementCounts:
    """Likes and comments on a single target."""

    target_id: int
    target_type: TargetType
    likes: int
    comments: int


async def ensure_target_exists(db: AsyncSession, target_type: TargetType, target_id: int) -> None:
    """Raise TargetNotFound unless the target row exists."""
    model = TARGET_MODELS[target_type]
    found = await db.scalar(select(exists().where(model.id == target_id)))
    if not found:
        raise TargetNotFound(target_type.value, target_id)


async def record_activity(
    db: AsyncSession,
    actor_id: str | None,
    action: str,
    target_id: int | None = None,
    target_type: TargetType | None = None,
    details: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> ActivityRecord:
    """Append an activity record to the current transaction (flushed, not committed)."""
    record = ActivityRecord(
        actor_id=actor_id,
        action=action,
        target_id=target_id,
        target_type=target_type.value if target_type else None,
        details=details,
        metadata_json=metadata or {},
    )
    db.add(record)
    await db.flush()
    return record


# =============================================================================
# Comments
# =============================================================================


async def post_comment(
    db: AsyncSession,
    actor_id: str,
    target_id: int,
    target_type: TargetType,
    content: str,
) -> Comment:
    """Create a comment and its activity record in one commit."""
    async with unit_of_work(db, "post_comment"):
        await ensure_target_exists(db, target_type, target_id)
        comment = Comment(
            actor_id=actor_id,
            target_id=target_id,
            target_type=target_type,
            content=content,
        )
        db.add(comment)
        await db.flush()
        await record_activity(
            db,
            actor_id,
            "comment_created",
            target_id=target_id,
            target_type=target_type,
            details=f"Commented on a {target_type.value}",
            metadata={"comment_id": comment.id},
        )

    logger.bind(
        actor_id=actor_id,
        target=f"{target_type.value}:{target_id}",
        comment_id=comment.id,
    ).info("comment_posted")
    return comment


async def _get_own_comment(db: AsyncSession, comment_id: int, actor_id: str) -> Comment:
    comment = await db.get(Comment, comment_id)
    if comment is None:
        raise TargetNotFound("comment", comment_id)
    if comment.actor_id != actor_id:
        raise NotCommentAuthor(f"Comment {comment_id} belongs to another member")
    return comment


async def update_comment(db: AsyncSession, comment_id: int, actor_id: str, content: str) -> Comment:
    """Edit a comment. Only its author may edit it."""
    async with unit_of_work(db, "update_comment"):
        comment = await _get_own_comment(db, comment_id, actor_id)
        comment.content = content
        comment.updated_at = utc_now()
    return comment


async def delete_comment(db: AsyncSession, comment_id: int, actor_id: str) -> None:
    """Delete a comment. Only its author may delete it."""
    async with unit_of_work(db, "delete_comment"):
        comment = await _get_own_comment(db, comment_id, actor_id)
        await db.delete(comment)


async def list_comments(
    db: AsyncSession,
    target_id: int,
    target_type: TargetType,
    limit: int = 50,
    offset: int = 0,
) -> list[Comment]:
    """Comments on a target, newest first."""
    result = await db.execute(
        select(Comment)
        .where(Comment.target_id == target_id, Comment.target_type == target_type)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


# =============================================================================
# Queries
# =============================================================================


async def count_for(db: AsyncSession, target_id: int, target_type: TargetType) -> EngagementCounts:
    """Count likes and comments on a target. Computed on read, never cached."""
    likes = await db.scalar(
        select(func.count(Like.id)).where(
            Like.target_id == target_id, Like.target_type == target_type
        )
    )
    comments = await db.scalar(
        select(func.count(Comment.id)).where(
            Comment.target_id == target_id, Comment.target_type == target_type
        )
    )
    return EngagementCounts(
        target_id=target_id,
        target_type=target_type,
        likes=likes or 0,
        comments=comments or 0,
    )


async def has_acted(
    db: AsyncSession,
    actor_id: str,
    target_id: int,
    target_type: TargetType,
    kind: EngagementKind = EngagementKind.LIKE,
) -> bool:
    """Whether the actor has an entry of ``kind`` on the target.

    Votes only exist on polls and RSVPs only on events; asking for them on
    any other target type is simply False.
    """
    if kind == EngagementKind.LIKE:
        condition = exists().where(
            Like.actor_id == actor_id,
            Like.target_id == target_id,
            Like.target_type == target_type,
        )
    elif kind == EngagementKind.COMMENT:
        condition = exists().where(
            Comment.actor_id == actor_id,
            Comment.target_id == target_id,
            Comment.target_type == target_type,
        )
    elif kind == EngagementKind.VOTE:
        if target_type != TargetType.POLL:
            return False
        condition = exists().where(PollVote.actor_id == actor_id, PollVote.poll_id == target_id)
    else:
        if target_type != TargetType.EVENT:
            return False
        condition = exists().where(RSVP.actor_id == actor_id, RSVP.event_id == target_id)

    return bool(await db.scalar(select(condition)))


async def list_recent_activity(
    db: AsyncSession, limit: int = 10, offset: int = 0
) -> list[ActivityRecord]:
    """Activity feed across all members, newest first."""
    result = await db.execute(
        select(ActivityRecord)
        .order_by(ActivityRecord.created_at.desc(), ActivityRecord.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_user_activity(
    db: AsyncSession, actor_id: str, limit: int = 10, offset: int = 0
) -> list[ActivityRecord]:
    """Activity feed for one member, newest first."""
    result = await db.execute(
        select(ActivityRecord)
        .where(ActivityRecord.actor_id == actor_id)
        .order_by(ActivityRecord.created_at.desc(), ActivityRecord.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_user_likes(
    db: AsyncSession, actor_id: str, target_type: TargetType | None = None
) -> list[Like]:
    query = select(Like).where(Like.actor_id == actor_id).order_by(Like.created_at.desc())
    if target_type is not None:
        query = query.where(Like.target_type == target_type)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_rsvp(db: AsyncSession, actor_id: str, event_id: int) -> RSVP | None:
    result = await db.execute(
        select(RSVP)
        .where(RSVP.actor_id == actor_id, RSVP.event_id == event_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_event_rsvps(db: AsyncSession, event_id: int) -> list[RSVP]:
    result = await db.execute(
        select(RSVP)
        .where(RSVP.event_id == event_id)
        .order_by(RSVP.created_at)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
