"""Single-row lease that lets only one digest cycle run at a time.

Acquiring is one conditional write: insert the row if it doesn't exist, or
take it over if the previous holder's lease has expired. Releasing deletes
the row and is meant to share a commit with the cycle's last write.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from focusroom.core.database import dialect_insert, unit_of_work
from focusroom.core.datetime_utils import utc_now
from focusroom.core.errors import LeaseHeld
from focusroom.core.logging import get_logger
from focusroom.core.security import generate_token
from focusroom.models.digest import DigestLease

logger = get_logger(__name__)

DIGEST_LEASE = "weekly_digest"


@dataclass
class Lease:
    name: str
    holder: str
    acquired_at: datetime
    expires_at: datetime


async def acquire_lease(
    db: AsyncSession,
    name: str,
    ttl_seconds: float,
    now: datetime | None = None,
) -> Lease:
    """Take the named lease or raise LeaseHeld. Commits on success."""
    now = now or utc_now()
    lease = Lease(
        name=name,
        holder=generate_token(),
        acquired_at=now,
        expires_at=now + timedelta(seconds=ttl_seconds),
    )

    async with unit_of_work(db, "acquire_lease"):
        inserted = await db.execute(
            dialect_insert(db, DigestLease)
            .values(
                name=name,
                holder=lease.holder,
                acquired_at=lease.acquired_at,
                expires_at=lease.expires_at,
            )
            .on_conflict_do_nothing(index_elements=["name"])
            .returning(DigestLease.name)
        )
        if inserted.scalar_one_or_none() is None:
            # Row exists: only an expired lease may be taken over
            taken = await db.execute(
                update(DigestLease)
                .where(DigestLease.name == name, DigestLease.expires_at <= now)
                .values(
                    holder=lease.holder,
                    acquired_at=lease.acquired_at,
                    expires_at=lease.expires_at,
                )
                .execution_options(synchronize_session=False)
            )
            if taken.rowcount == 0:
                expires_at = await db.scalar(
                    select(DigestLease.expires_at).where(DigestLease.name == name)
                )
                raise LeaseHeld(name, expires_at)
            logger.bind(lease=name).warning("expired_lease_taken_over")

    logger.bind(lease=name, expires_at=lease.expires_at.isoformat()).debug("lease_acquired")
    return lease


async def release_lease(db: AsyncSession, lease: Lease) -> bool:
    """Delete the lease row if this holder still owns it. Does not commit."""
    result = await db.execute(
        delete(DigestLease).where(
            DigestLease.name == lease.name, DigestLease.holder == lease.holder
        )
    )
    released = result.rowcount > 0
    if not released:
        logger.bind(lease=lease.name).warning("lease_lost_before_release")
    return released
