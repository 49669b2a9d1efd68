from fastapi import APIRouter, Query, Request, status

from focusroom.config import get_config
from focusroom.core.rate_limit import limiter
from focusroom.dependencies import AdminActor, Config, CurrentActor, DBSession
from focusroom.models.engagement import EngagementKind, TargetType
from focusroom.schemas.engagement import (
    ActivityResponse,
    CommentCreate,
    CommentResponse,
    CommentUpdate,
    EngagementCountsResponse,
    HasActedResponse,
    LikeResponse,
    LikeToggleRequest,
    LikeToggleResponse,
    OptionDriftResponse,
    ReconcileResponse,
    RSVPRequest,
    RSVPResponse,
    VoteRequest,
    VoteResponse,
)
from focusroom.services import engagement_store, uniqueness_guard

router = APIRouter()


def _comment_rate_limit() -> str:
    return get_config().engagement.comment_rate_limit


# =============================================================================
# Likes
# =============================================================================


@router.post("/likes/toggle", response_model=LikeToggleResponse)
async def toggle_like(
    body: LikeToggleRequest,
    actor: CurrentActor,
    db: DBSession,
    config: Config,
) -> LikeToggleResponse:
    """
    Like a target, or remove the like if the actor already has one.

    Returns the resulting state and the target's like count.
    """
    result = await uniqueness_guard.toggle_like(
        db,
        actor.id,
        body.target_id,
        body.target_type,
        max_attempts=config.engagement.toggle_max_attempts,
    )
    return LikeToggleResponse(active=result.active, like_count=result.like_count)


@router.get("/me/likes", response_model=list[LikeResponse])
async def list_my_likes(
    actor: CurrentActor,
    db: DBSession,
    target_type: TargetType | None = None,
) -> list[LikeResponse]:
    likes = await engagement_store.list_user_likes(db, actor.id, target_type)
    return [LikeResponse.model_validate(like) for like in likes]


# =============================================================================
# Polls
# =============================================================================


@router.post(
    "/polls/{poll_id}/votes",
    response_model=VoteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def cast_vote(
    poll_id: int,
    body: VoteRequest,
    actor: CurrentActor,
    db: DBSession,
) -> VoteResponse:
    """
    Cast the actor's vote on a poll.

    A second vote on the same poll is rejected with 409 ``already_voted``.
    """
    vote = await uniqueness_guard.cast_vote(db, actor.id, poll_id, body.option_id)
    return VoteResponse.model_validate(vote)


@router.post("/polls/{poll_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_poll(
    poll_id: int,
    admin: AdminActor,
    db: DBSession,
) -> ReconcileResponse:
    """Recompute a poll's option counters from its vote rows (admin only)."""
    drift = await uniqueness_guard.reconcile_poll_counts(db, poll_id)
    return ReconcileResponse(
        poll_id=poll_id,
        repaired=[OptionDriftResponse.model_validate(d) for d in drift],
    )


# =============================================================================
# RSVPs
# =============================================================================


@router.put("/events/{event_id}/rsvp", response_model=RSVPResponse)
async def set_rsvp(
    event_id: int,
    body: RSVPRequest,
    actor: CurrentActor,
    db: DBSession,
) -> RSVPResponse:
    """Create or update the actor's RSVP for an event."""
    rsvp = await uniqueness_guard.set_rsvp(db, actor.id, event_id, body.status)
    return RSVPResponse.model_validate(rsvp)


@router.get("/events/{event_id}/rsvp", response_model=RSVPResponse | None)
async def get_my_rsvp(event_id: int, actor: CurrentActor, db: DBSession) -> RSVPResponse | None:
    rsvp = await engagement_store.get_rsvp(db, actor.id, event_id)
    return RSVPResponse.model_validate(rsvp) if rsvp else None


@router.delete("/events/{event_id}/rsvp")
async def remove_rsvp(event_id: int, actor: CurrentActor, db: DBSession) -> dict:
    removed = await uniqueness_guard.remove_rsvp(db, actor.id, event_id)
    return {"ok": True, "removed": removed}


@router.get("/events/{event_id}/rsvps", response_model=list[RSVPResponse])
async def list_event_rsvps(event_id: int, actor: CurrentActor, db: DBSession) -> list[RSVPResponse]:
    rsvps = await engagement_store.list_event_rsvps(db, event_id)
    return [RSVPResponse.model_validate(rsvp) for rsvp in rsvps]


# =============================================================================
# Comments
# =============================================================================


@router.post("/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(_comment_rate_limit)
async def post_comment(
    request: Request,
    body: CommentCreate,
    actor: CurrentActor,
    db: DBSession,
) -> CommentResponse:
    """
    Post a comment on an event, poll or spotlight.

    Rate limited per session (engagement.comment_rate_limit).
    """
    comment = await engagement_store.post_comment(
        db, actor.id, body.target_id, body.target_type, body.content
    )
    return CommentResponse.model_validate(comment)


@router.get("/comments", response_model=list[CommentResponse])
async def list_comments(
    db: DBSession,
    target_id: int,
    target_type: TargetType,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> list[CommentResponse]:
    comments = await engagement_store.list_comments(db, target_id, target_type, limit, offset)
    return [CommentResponse.model_validate(comment) for comment in comments]


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: int,
    body: CommentUpdate,
    actor: CurrentActor,
    db: DBSession,
) -> CommentResponse:
    """Edit one of the actor's own comments."""
    comment = await engagement_store.update_comment(db, comment_id, actor.id, body.content)
    return CommentResponse.model_validate(comment)


@router.delete("/comments/{comment_id}")
async def delete_comment(comment_id: int, actor: CurrentActor, db: DBSession) -> dict:
    await engagement_store.delete_comment(db, comment_id, actor.id)
    return {"ok": True}


# =============================================================================
# Queries
# =============================================================================


@router.get("/engagement/counts", response_model=EngagementCountsResponse)
async def get_engagement_counts(
    db: DBSession,
    target_id: int,
    target_type: TargetType,
) -> EngagementCountsResponse:
    counts = await engagement_store.count_for(db, target_id, target_type)
    return EngagementCountsResponse(
        target_id=counts.target_id,
        target_type=counts.target_type,
        likes=counts.likes,
        comments=counts.comments,
    )


@router.get("/engagement/acted", response_model=HasActedResponse)
async def get_has_acted(
    actor: CurrentActor,
    db: DBSession,
    target_id: int,
    target_type: TargetType,
    kind: EngagementKind = EngagementKind.LIKE,
) -> HasActedResponse:
    """Whether the current actor has liked, commented on, voted on or RSVP'd to a target."""
    acted = await engagement_store.has_acted(db, actor.id, target_id, target_type, kind)
    return HasActedResponse(kind=kind, acted=acted)


@router.get("/activity", response_model=list[ActivityResponse])
async def list_recent_activity(
    db: DBSession,
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> list[ActivityResponse]:
    records = await engagement_store.list_recent_activity(db, limit, offset)
    return [ActivityResponse.model_validate(record) for record in records]


@router.get("/activity/users/{actor_id}", response_model=list[ActivityResponse])
async def list_user_activity(
    actor_id: str,
    db: DBSession,
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> list[ActivityResponse]:
    records = await engagement_store.list_user_activity(db, actor_id, limit, offset)
    return [ActivityResponse.model_validate(record) for record in records]
