from focusroom.schemas.digest import (
    DigestCycleResponse,
    DigestHistoryResponse,
    DigestPreviewResponse,
    DigestRunResponse,
    JobScheduleResponse,
)
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
    ReconcileResponse,
    RSVPRequest,
    RSVPResponse,
    VoteRequest,
    VoteResponse,
)

__all__ = [
    "ActivityResponse",
    "CommentCreate",
    "CommentResponse",
    "CommentUpdate",
    "EngagementCountsResponse",
    "HasActedResponse",
    "LikeResponse",
    "LikeToggleRequest",
    "LikeToggleResponse",
    "ReconcileResponse",
    "RSVPRequest",
    "RSVPResponse",
    "VoteRequest",
    "VoteResponse",
    "DigestCycleResponse",
    "DigestHistoryResponse",
    "DigestPreviewResponse",
    "DigestRunResponse",
    "JobScheduleResponse",
]
