"""
Weekly digest cycle.

A cycle walks Checking -> Collecting -> Rendering -> Delivering -> Recording,
or stops at Skipped when the last digest is still inside the window. The
newest DigestRun is the only scheduling memory. Cycles are serialized by the
digest lease, so any number of triggers (timer, cron hit, admin, CLI) can
fire and at most one digest goes out per window.

Nothing is written before Recording. A cycle that aborts leaves the window
open and the next trigger retries with the same cutoff.
"""

import asyncio
import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from focusroom.config import get_config
from focusroom.core.database import unit_of_work
from focusroom.core.datetime_utils import get_cutoff, utc_now
from focusroom.core.errors import (
    CycleTimeout,
    DeliveryFailure,
    LeaseHeld,
    NoRecipients,
    StoreUnavailable,
)
from focusroom.core.logging import get_logger
from focusroom.digest.aggregator import ActivitySet, collect
from focusroom.digest.lease import DIGEST_LEASE, Lease, acquire_lease, release_lease
from focusroom.digest.renderer import DigestReport, render
from focusroom.models.digest import DigestRun
from focusroom.services.delivery import DeliveryAdapter, ResendDelivery
from focusroom.services.identity import DatabaseIdentityProvider, IdentityProvider

logger = get_logger(__name__)

SYSTEM_SENDER = "system"


class CycleState(str, enum.Enum):
    IDLE = "idle"
    CHECKING = "checking"
    SKIPPED = "skipped"
    COLLECTING = "collecting"
    RENDERING = "rendering"
    DELIVERING = "delivering"
    RECORDING = "recording"


class Trigger(str, enum.Enum):
    SCHEDULER = "scheduler"
    CRON = "cron"
    MANUAL = "manual"
    CLI = "cli"


@dataclass
class DigestCycleResult:
    ran: bool
    reason: str | None = None
    last_sent: datetime | None = None
    recipient_count: int = 0
    emails_sent: int = 0
    emails_failed: int = 0
    content_summary: str | None = None
    digest_run_id: uuid.UUID | None = None


@dataclass
class DigestPreview:
    cutoff: datetime
    last_sent: datetime | None
    eligible: bool
    report: DigestReport
    counts: dict[str, int] = field(default_factory=dict)


def _transition(state: CycleState, trigger: Trigger, **fields) -> None:
    logger.bind(state=state.value, trigger=trigger.value, **fields).info("digest_cycle_state")


async def get_last_run(db: AsyncSession) -> DigestRun | None:
    """Most recent DigestRun by sent_at, if any."""
    result = await db.execute(select(DigestRun).order_by(DigestRun.sent_at.desc()).limit(1))
    return result.scalar_one_or_none()


async def list_runs(db: AsyncSession, limit: int = 10, offset: int = 0) -> list[DigestRun]:
    result = await db.execute(
        select(DigestRun).order_by(DigestRun.sent_at.desc()).offset(offset).limit(limit)
    )
    return list(result.scalars().all())


def is_within_window(last_sent: datetime | None, now: datetime, window_days: int) -> bool:
    return last_sent is not None and now - last_sent < timedelta(days=window_days)


def compute_cutoff(last_sent: datetime | None, now: datetime, window_days: int) -> datetime:
    """Window start: the last send, or one window back when nothing was ever sent."""
    if last_sent is not None:
        return last_sent
    return get_cutoff(days=window_days, now=now)


async def run_digest_cycle(
    db: AsyncSession,
    *,
    trigger: Trigger = Trigger.SCHEDULER,
    sent_by: str = SYSTEM_SENDER,
    delivery: DeliveryAdapter | None = None,
    identity: IdentityProvider | None = None,
    now: datetime | None = None,
    timeout_seconds: float | None = None,
) -> DigestCycleResult:
    """
    Run one digest cycle if the window allows it.

    Args:
        db: Database session owned by this invocation
        trigger: What fired the cycle (recorded on the DigestRun)
        sent_by: "system" for timer/cron triggers, the admin's user id otherwise
        delivery: Transport, defaults to Resend
        identity: Recipient source, defaults to the users table
        now: Reference time, defaults to the current UTC time
        timeout_seconds: Overrides digest.cycle_timeout_seconds

    Returns:
        DigestCycleResult; ``ran`` is False for skipped cycles

    Raises:
        AggregationFailure: An activity source failed
        NoRecipients: No user has an email address
        CycleTimeout: The cycle ran past its timeout
        StoreUnavailable: The store failed
    """
    config = get_config().digest
    now = now or utc_now()
    delivery = delivery or ResendDelivery()
    identity = identity or DatabaseIdentityProvider(db)
    timeout_seconds = timeout_seconds or config.cycle_timeout_seconds

    _transition(CycleState.CHECKING, trigger)
    try:
        lease = await acquire_lease(
            db, DIGEST_LEASE, timeout_seconds + config.lease_margin_seconds, now=now
        )
    except LeaseHeld as e:
        logger.bind(
            trigger=trigger.value,
            lease_expires_at=e.expires_at.isoformat() if e.expires_at else None,
        ).info("digest_cycle_in_progress")
        return DigestCycleResult(ran=False, reason="cycle in progress")

    try:
        async with asyncio.timeout(timeout_seconds):
            return await _run_with_lease(db, lease, trigger, sent_by, delivery, identity, now)
    except TimeoutError as e:
        await _abort(db, lease, trigger, "timeout")
        raise CycleTimeout(timeout_seconds) from e
    except Exception as e:
        await _abort(db, lease, trigger, str(e))
        raise


async def _run_with_lease(
    db: AsyncSession,
    lease: Lease,
    trigger: Trigger,
    sent_by: str,
    delivery: DeliveryAdapter,
    identity: IdentityProvider,
    now: datetime,
) -> DigestCycleResult:
    config = get_config().digest

    last_run = await get_last_run(db)
    last_sent = last_run.sent_at if last_run else None

    if is_within_window(last_sent, now, config.window_days):
        async with unit_of_work(db, "release_lease"):
            await release_lease(db, lease)
        _transition(CycleState.SKIPPED, trigger, last_sent=last_sent.isoformat())
        return DigestCycleResult(ran=False, reason="within window", last_sent=last_sent)

    cutoff = compute_cutoff(last_sent, now, config.window_days)
    _transition(CycleState.COLLECTING, trigger, cutoff=cutoff.isoformat(), bootstrap=not last_run)
    activity = await collect(db, cutoff, config.stream_cap)

    _transition(CycleState.RENDERING, trigger, has_activity=activity.has_activity)
    report = render(activity, now)

    recipients = await identity.list_recipients(config.recipient_limit)
    if not recipients:
        raise NoRecipients()
    emails = [recipient.email for recipient in recipients]

    _transition(CycleState.DELIVERING, trigger, recipient_count=len(emails))
    try:
        delivered = await delivery.send(emails, report.subject, report.html)
        emails_sent, emails_failed = delivered.emails_sent, delivered.emails_failed
    except DeliveryFailure as e:
        logger.bind(trigger=trigger.value, error=e.message).error("digest_delivery_failed")
        emails_sent, emails_failed = 0, len(emails)

    _transition(CycleState.RECORDING, trigger)
    async with unit_of_work(db, "record_digest_run"):
        run = DigestRun(
            sent_at=now,
            sent_by=sent_by,
            trigger=trigger.value,
            cutoff=cutoff,
            recipient_count=len(emails),
            content_summary=report.content_summary,
            emails_sent=emails_sent,
            emails_failed=emails_failed,
        )
        db.add(run)
        await release_lease(db, lease)

    logger.bind(
        trigger=trigger.value,
        sent_by=sent_by,
        digest_run_id=str(run.id),
        recipient_count=run.recipient_count,
        emails_sent=emails_sent,
        emails_failed=emails_failed,
        summary=report.content_summary,
    ).info("digest_cycle_completed")
    _transition(CycleState.IDLE, trigger)

    return DigestCycleResult(
        ran=True,
        recipient_count=run.recipient_count,
        emails_sent=emails_sent,
        emails_failed=emails_failed,
        content_summary=report.content_summary,
        digest_run_id=run.id,
    )


async def _abort(db: AsyncSession, lease: Lease, trigger: Trigger, error: str) -> None:
    """Discard the cycle's uncommitted work and give the lease back."""
    logger.bind(trigger=trigger.value, error=error).error("digest_cycle_aborted")
    await db.rollback()
    try:
        async with unit_of_work(db, "release_lease"):
            await release_lease(db, lease)
    except StoreUnavailable:
        # The lease expires on its own
        logger.bind(lease=lease.name).error("lease_release_failed")
    _transition(CycleState.IDLE, trigger)


async def preview(db: AsyncSession, now: datetime | None = None) -> DigestPreview:
    """Collect and render the next digest without sending or recording anything."""
    config = get_config().digest
    now = now or utc_now()

    last_run = await get_last_run(db)
    last_sent = last_run.sent_at if last_run else None
    cutoff = compute_cutoff(last_sent, now, config.window_days)

    activity: ActivitySet = await collect(db, cutoff, config.stream_cap)
    report = render(activity, now)

    logger.bind(cutoff=cutoff.isoformat(), **activity.counts()).info("digest_previewed")
    return DigestPreview(
        cutoff=cutoff,
        last_sent=last_sent,
        eligible=not is_within_window(last_sent, now, config.window_days),
        report=report,
        counts=activity.counts(),
    )
