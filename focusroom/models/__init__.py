from focusroom.models.base import Base
from focusroom.models.content import Event, Feedback, Poll, PollOption, Project, Spotlight, Task
from focusroom.models.digest import DigestLease, DigestRun
from focusroom.models.engagement import (
    RSVP,
    ActivityRecord,
    Comment,
    EngagementKind,
    Like,
    PollVote,
    RSVPStatus,
    TargetType,
)
from focusroom.models.user import Session, User

__all__ = [
    "Base",
    "User",
    "Session",
    "Event",
    "Poll",
    "PollOption",
    "Spotlight",
    "Feedback",
    "Project",
    "Task",
    "Like",
    "Comment",
    "PollVote",
    "RSVP",
    "ActivityRecord",
    "TargetType",
    "RSVPStatus",
    "EngagementKind",
    "DigestRun",
    "DigestLease",
]
