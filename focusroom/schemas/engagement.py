from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from focusroom.models.engagement import EngagementKind, RSVPStatus, TargetType


class LikeToggleRequest(BaseModel):
    """Request body for toggling a like."""

    target_id: int
    target_type: TargetType


class LikeToggleResponse(BaseModel):
    active: bool
    like_count: int


class LikeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    target_id: int
    target_type: TargetType
    created_at: datetime


class VoteRequest(BaseModel):
    option_id: int


class VoteResponse(BaseModel):
    """A cast vote."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    poll_id: int
    option_id: int
    actor_id: str
    created_at: datetime


class RSVPRequest(BaseModel):
    status: RSVPStatus


class RSVPResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    actor_id: str
    status: RSVPStatus
    created_at: datetime
    updated_at: datetime


class CommentCreate(BaseModel):
    """Request body for posting a comment."""

    target_id: int
    target_type: TargetType
    content: str = Field(min_length=1, max_length=1000)


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=1000)


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    actor_id: str
    target_id: int
    target_type: TargetType
    content: str
    created_at: datetime
    updated_at: datetime | None = None


class EngagementCountsResponse(BaseModel):
    """Response for /api/engagement/counts. Counts are computed on read."""

    target_id: int
    target_type: TargetType
    likes: int
    comments: int


class HasActedResponse(BaseModel):
    kind: EngagementKind
    acted: bool


class ActivityResponse(BaseModel):
    """Activity feed entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    actor_id: str | None
    action: str
    target_id: int | None = None
    target_type: str | None = None
    details: str | None = None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="metadata_json")
    created_at: datetime


class OptionDriftResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    option_id: int
    recorded: int
    actual: int


class ReconcileResponse(BaseModel):
    """Response for /api/polls/{poll_id}/reconcile."""

    poll_id: int
    repaired: list[OptionDriftResponse] = Field(default_factory=list)
