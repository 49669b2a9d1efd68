from fastapi import APIRouter, Depends, Query, Request

from focusroom.config import get_config
from focusroom.core.logging import get_logger
from focusroom.core.rate_limit import limiter
from focusroom.core.scheduler import get_job_schedules
from focusroom.dependencies import (
    AdminActor,
    CurrentActor,
    DBSession,
    Delivery,
    require_cron_secret,
)
from focusroom.digest import scheduler as digest_scheduler
from focusroom.digest.scheduler import DigestCycleResult, Trigger
from focusroom.schemas.digest import (
    DigestCycleResponse,
    DigestHistoryResponse,
    DigestPreviewResponse,
    DigestRunResponse,
    JobScheduleResponse,
)

logger = get_logger(__name__)

router = APIRouter()


def _digest_send_rate_limit() -> str:
    return get_config().engagement.digest_send_rate_limit


def _to_response(result: DigestCycleResult) -> DigestCycleResponse:
    return DigestCycleResponse.model_validate(result)


@router.api_route(
    "/cron/weekly-digest",
    methods=["GET", "POST"],
    response_model=DigestCycleResponse,
    dependencies=[Depends(require_cron_secret)],
)
async def cron_weekly_digest(db: DBSession, delivery: Delivery) -> DigestCycleResponse:
    """
    External cron entrypoint.

    Requires ``Authorization: Bearer <CRON_SECRET>``. Safe to hit repeatedly:
    hits inside the window or during a running cycle are no-ops.
    """
    logger.info("cron_digest_triggered")
    result = await digest_scheduler.run_digest_cycle(db, trigger=Trigger.CRON, delivery=delivery)
    return _to_response(result)


@router.post("/digest/send", response_model=DigestCycleResponse)
@limiter.limit(_digest_send_rate_limit)
async def send_digest(
    request: Request,
    admin: AdminActor,
    db: DBSession,
    delivery: Delivery,
) -> DigestCycleResponse:
    """Trigger a digest cycle manually (admin only). The window still applies."""
    logger.bind(admin_id=admin.id).info("manual_digest_triggered")
    result = await digest_scheduler.run_digest_cycle(
        db, trigger=Trigger.MANUAL, sent_by=admin.id, delivery=delivery
    )
    return _to_response(result)


@router.get("/digest/preview", response_model=DigestPreviewResponse)
async def preview_digest(admin: AdminActor, db: DBSession) -> DigestPreviewResponse:
    """Render the next digest without sending or recording it (admin only)."""
    result = await digest_scheduler.preview(db)
    return DigestPreviewResponse(
        cutoff=result.cutoff,
        last_sent=result.last_sent,
        eligible=result.eligible,
        subject=result.report.subject,
        html=result.report.html,
        content_summary=result.report.content_summary,
        counts=result.counts,
    )


@router.get("/digest/last", response_model=DigestRunResponse | None)
async def get_last_digest(actor: CurrentActor, db: DBSession) -> DigestRunResponse | None:
    run = await digest_scheduler.get_last_run(db)
    return DigestRunResponse.model_validate(run) if run else None


@router.get("/digest/history", response_model=DigestHistoryResponse)
async def get_digest_history(
    admin: AdminActor,
    db: DBSession,
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> DigestHistoryResponse:
    runs = await digest_scheduler.list_runs(db, limit, offset)
    return DigestHistoryResponse(
        runs=[DigestRunResponse.model_validate(run) for run in runs],
        limit=limit,
        offset=offset,
    )


@router.get("/digest/schedule", response_model=list[JobScheduleResponse])
async def get_digest_schedule(admin: AdminActor) -> list[JobScheduleResponse]:
    """Registered in-process schedules. Empty when the scheduler is disabled."""
    return [JobScheduleResponse(**schedule) for schedule in await get_job_schedules()]
