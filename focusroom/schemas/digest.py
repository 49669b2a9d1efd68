import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DigestCycleResponse(BaseModel):
    """Outcome of a digest trigger. ``ran`` is False for skipped cycles."""

    model_config = ConfigDict(from_attributes=True)

    ran: bool
    reason: str | None = None
    last_sent: datetime | None = None
    recipient_count: int = 0
    emails_sent: int = 0
    emails_failed: int = 0
    content_summary: str | None = None
    digest_run_id: uuid.UUID | None = None


class DigestRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    sent_at: datetime
    sent_by: str
    trigger: str
    cutoff: datetime | None = None
    recipient_count: int
    content_summary: str
    emails_sent: int
    emails_failed: int


class DigestHistoryResponse(BaseModel):
    """Response for /api/digest/history."""

    runs: list[DigestRunResponse] = Field(default_factory=list)
    limit: int
    offset: int


class DigestPreviewResponse(BaseModel):
    """Dry run of the next digest: nothing is sent or recorded."""

    cutoff: datetime
    last_sent: datetime | None = None
    eligible: bool
    subject: str
    html: str
    content_summary: str
    counts: dict[str, int] = Field(default_factory=dict)


class JobScheduleResponse(BaseModel):
    id: str
    task_id: str
    trigger: str
    next_fire_time: str | None = None
    last_fire_time: str | None = None
