"""Error taxonomy for the engagement ledger and the digest scheduler.

Engagement rejections are user-caused and returned to the caller as typed
results. Digest cycle errors abort a cycle before anything is recorded, so
the eligibility window stays open for the next trigger.
"""

from datetime import datetime


class FocusRoomError(Exception):
    """Base class for all application errors."""

    code: str = "internal_error"
    status_code: int = 500

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


# =============================================================================
# Engagement rejections (non-retryable as-is)
# =============================================================================


class EngagementRejected(FocusRoomError):
    """A user interaction was refused by the ledger."""

    code = "engagement_rejected"
    status_code = 409


class AlreadyVoted(EngagementRejected):
    """The actor already has a vote on this poll."""

    code = "already_voted"

    def __init__(self, poll_id: int, actor_id: str) -> None:
        super().__init__(f"Actor {actor_id} already voted on poll {poll_id}")
        self.poll_id = poll_id
        self.actor_id = actor_id


class DuplicateEngagement(EngagementRejected):
    """The actor already holds the unique entry this operation would create."""

    code = "duplicate_engagement"


class TargetNotFound(EngagementRejected):
    code = "target_not_found"
    status_code = 404

    def __init__(self, target_type: str, target_id: int) -> None:
        super().__init__(f"No {target_type} with id {target_id}")
        self.target_type = target_type
        self.target_id = target_id


class InvalidOption(EngagementRejected):
    code = "invalid_option"
    status_code = 422

    def __init__(self, poll_id: int, option_id: int) -> None:
        super().__init__(f"Option {option_id} does not belong to poll {poll_id}")
        self.poll_id = poll_id
        self.option_id = option_id


class PollClosed(EngagementRejected):
    code = "poll_closed"

    def __init__(self, poll_id: int) -> None:
        super().__init__(f"Poll {poll_id} is no longer accepting votes")
        self.poll_id = poll_id


class NotCommentAuthor(EngagementRejected):
    code = "not_comment_author"
    status_code = 403


# =============================================================================
# Digest cycle errors (cycle aborted, window stays open)
# =============================================================================


class DigestCycleError(FocusRoomError):
    """A digest cycle aborted before recording; safe to retry on the next trigger."""

    code = "digest_cycle_error"
    status_code = 503


class AggregationFailure(DigestCycleError):
    code = "aggregation_failure"

    def __init__(self, source: str, cause: Exception) -> None:
        super().__init__(f"Activity source '{source}' failed: {cause}")
        self.source = source
        self.cause = cause


class NoRecipients(DigestCycleError):
    code = "no_recipients"
    status_code = 422

    def __init__(self) -> None:
        super().__init__("No users with email addresses found")


class CycleTimeout(DigestCycleError):
    code = "cycle_timeout"
    status_code = 504

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Digest cycle exceeded {timeout_seconds}s")
        self.timeout_seconds = timeout_seconds


class DeliveryFailure(FocusRoomError):
    """The delivery adapter could not hand the digest to the transport.

    Raised by adapters and absorbed by the scheduler, which records the
    failure on the DigestRun instead of aborting.
    """

    code = "delivery_failure"
    status_code = 502

    def __init__(self, message: str, recipient_count: int = 0) -> None:
        super().__init__(message)
        self.recipient_count = recipient_count


# =============================================================================
# Infrastructure
# =============================================================================


class StoreUnavailable(FocusRoomError):
    """A persistence operation failed; the current invocation is aborted."""

    code = "store_unavailable"
    status_code = 503


class LeaseHeld(FocusRoomError):
    """Another invocation currently owns the digest lease."""

    code = "cycle_in_progress"
    status_code = 409

    def __init__(self, name: str, expires_at: datetime | None = None) -> None:
        super().__init__(f"Lease '{name}' is held")
        self.name = name
        self.expires_at = expires_at
