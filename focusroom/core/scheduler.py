"""
APScheduler integration for FastAPI.

Runs the weekly digest job in-process. The job fires on a cron schedule
(daily by default); the digest eligibility window turns every firing inside
the window into a no-op, so the timer only has to fire at least once a week.
"""

from typing import Any

from apscheduler import AsyncScheduler, ConflictPolicy, JobOutcome, JobReleased
from apscheduler.datastores.memory import MemoryDataStore
from apscheduler.triggers.cron import CronTrigger

from focusroom.config import get_config, get_settings
from focusroom.core.database import AsyncSessionLocal
from focusroom.core.logging import get_logger

logger = get_logger(__name__)

# Global scheduler instance
scheduler: AsyncScheduler | None = None

DIGEST_SCHEDULE_ID = "weekly_digest"


async def weekly_digest_job() -> None:
    """Run one digest cycle. Skips quietly while inside the window."""
    from focusroom.digest.scheduler import Trigger, run_digest_cycle

    logger.debug("scheduled_digest_job_started")
    async with AsyncSessionLocal() as db:
        try:
            result = await run_digest_cycle(db, trigger=Trigger.SCHEDULER)
        except Exception as e:
            logger.bind(error=str(e)).error("scheduled_digest_job_failed")
            raise  # Re-raise so APScheduler records the failure

    if result.ran:
        logger.bind(
            recipients=result.recipient_count,
            sent=result.emails_sent,
            failed=result.emails_failed,
        ).info("scheduled_digest_job_completed")
    else:
        logger.bind(reason=result.reason).debug("scheduled_digest_job_skipped")


async def start_scheduler() -> AsyncScheduler | None:
    """Initialize and start the scheduler."""
    global scheduler

    settings = get_settings()
    if not settings.scheduler_enabled:
        logger.info("scheduler_disabled_by_config")
        return None

    # Schedules don't persist across restarts; the DigestRun table is the durable state
    data_store = MemoryDataStore()
    scheduler = AsyncScheduler(data_store=data_store)

    # Start the scheduler first (required before calling other methods in APScheduler 4.x)
    await scheduler.__aenter__()

    scheduler.subscribe(_on_job_released, {JobReleased})

    cron = get_config().digest.schedule_cron
    await scheduler.add_schedule(
        weekly_digest_job,
        CronTrigger.from_crontab(cron),
        id=DIGEST_SCHEDULE_ID,
        conflict_policy=ConflictPolicy.replace,
    )

    # Start the scheduler's background worker to actually process jobs
    await scheduler.start_in_background()

    logger.bind(jobs=[DIGEST_SCHEDULE_ID], cron=cron).info("scheduler_started")
    return scheduler


async def _on_job_released(event: Any) -> None:
    if isinstance(event, JobReleased) and event.outcome == JobOutcome.error:
        exception = getattr(event, "exception", None)
        logger.bind(
            schedule_id=event.schedule_id or "unknown",
            error=str(exception) if exception else None,
        ).error("scheduled_job_errored")


async def stop_scheduler() -> None:
    """Gracefully stop the scheduler."""
    global scheduler
    if scheduler:
        await scheduler.__aexit__(None, None, None)
        logger.info("scheduler_stopped")
        scheduler = None


async def get_job_schedules() -> list[dict[str, Any]]:
    """Get all registered job schedules."""
    if not scheduler:
        return []

    schedules = await scheduler.get_schedules()
    return [
        {
            "id": s.id,
            "task_id": s.task_id,
            "trigger": str(s.trigger),
            "next_fire_time": s.next_fire_time.isoformat() if s.next_fire_time else None,
            "last_fire_time": s.last_fire_time.isoformat() if s.last_fire_time else None,
        }
        for s in schedules
    ]
