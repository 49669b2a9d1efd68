"""Uniqueness guard: one like, one vote and one RSVP per actor per target.

The unique constraints on the ledger tables decide every race. Writes are
single ``INSERT ... ON CONFLICT`` statements, so two concurrent requests from
the same actor can never both win, and a losing request learns so from the
statement result instead of from an IntegrityError.
"""

from dataclasses import dataclass

from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from focusroom.core.database import dialect_insert, unit_of_work
from focusroom.core.datetime_utils import utc_now
from focusroom.core.errors import (
    AlreadyVoted,
    DuplicateEngagement,
    FocusRoomError,
    InvalidOption,
    PollClosed,
    TargetNotFound,
)
from focusroom.core.logging import get_logger
from focusroom.core.retry import RetryConfig, retry_with_backoff
from focusroom.models.content import Poll, PollOption
from focusroom.models.engagement import RSVP, Like, PollVote, RSVPStatus, TargetType
from focusroom.services.engagement_store import (
    count_for,
    ensure_target_exists,
    record_activity,
)

logger = get_logger(__name__)


class ToggleConflict(FocusRoomError):
    """The like row changed between reading and writing it."""

    code = "toggle_conflict"


@dataclass
class ToggleResult:
    active: bool
    like_count: int


@dataclass
class OptionDrift:
    """A poll option whose stored counter disagreed with its vote rows."""

    option_id: int
    recorded: int
    actual: int


# =============================================================================
# Likes
# =============================================================================


class LikeSwitch:
    """Two-state switch over the like row for one (actor, target) pair.

    ``activate`` and ``deactivate`` report whether *this* call changed the
    state. False means a concurrent writer moved it first.
    """

    def __init__(
        self, db: AsyncSession, actor_id: str, target_id: int, target_type: TargetType
    ) -> None:
        self.db = db
        self.actor_id = actor_id
        self.target_id = target_id
        self.target_type = target_type

    def _matches(self):
        return (
            Like.actor_id == self.actor_id,
            Like.target_id == self.target_id,
            Like.target_type == self.target_type,
        )

    async def is_active(self) -> bool:
        return bool(await self.db.scalar(select(exists().where(*self._matches()))))

    async def activate(self) -> bool:
        stmt = (
            dialect_insert(self.db, Like)
            .values(
                actor_id=self.actor_id,
                target_id=self.target_id,
                target_type=self.target_type,
                created_at=utc_now(),
            )
            .on_conflict_do_nothing(index_elements=["actor_id", "target_id", "target_type"])
            .returning(Like.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def deactivate(self) -> bool:
        result = await self.db.execute(delete(Like).where(*self._matches()))
        return result.rowcount > 0

    async def flip(self) -> bool:
        """Move to the opposite state and commit. Returns the new state."""
        async with unit_of_work(self.db, "toggle_like"):
            if await self.is_active():
                if not await self.deactivate():
                    raise ToggleConflict("like removed concurrently")
                return False

            if not await self.activate():
                raise ToggleConflict("like inserted concurrently")
            await record_activity(
                self.db,
                self.actor_id,
                "post_liked",
                target_id=self.target_id,
                target_type=self.target_type,
                details=f"Liked a {self.target_type.value}",
            )
            return True


async def toggle_like(
    db: AsyncSession,
    actor_id: str,
    target_id: int,
    target_type: TargetType,
    max_attempts: int = 3,
) -> ToggleResult:
    """Like the target if the actor hasn't, otherwise remove the like.

    A conflict means another request flipped the same switch in between; the
    toggle is re-evaluated against the new state with a short backoff.
    """
    await ensure_target_exists(db, target_type, target_id)
    switch = LikeSwitch(db, actor_id, target_id, target_type)

    try:
        active = await retry_with_backoff(
            switch.flip,
            config=RetryConfig(max_attempts=max_attempts, retryable_exceptions=(ToggleConflict,)),
            operation_name="toggle_like",
        )
    except ToggleConflict as e:
        raise DuplicateEngagement(
            f"Like on {target_type.value} {target_id} kept changing concurrently"
        ) from e

    counts = await count_for(db, target_id, target_type)
    logger.bind(
        actor_id=actor_id,
        target=f"{target_type.value}:{target_id}",
        active=active,
        like_count=counts.likes,
    ).info("like_toggled")
    return ToggleResult(active=active, like_count=counts.likes)


# =============================================================================
# Poll votes
# =============================================================================


async def cast_vote(db: AsyncSession, actor_id: str, poll_id: int, option_id: int) -> PollVote:
    """Record the actor's single vote on a poll and bump the option counter.

    The vote row and the counter increment commit together or not at all.
    """
    now = utc_now()

    async with unit_of_work(db, "cast_vote"):
        poll = await db.get(Poll, poll_id)
        if poll is None:
            raise TargetNotFound(TargetType.POLL.value, poll_id)
        if not poll.is_active or (poll.ends_at is not None and poll.ends_at <= now):
            raise PollClosed(poll_id)

        option = await db.get(PollOption, option_id)
        if option is None or option.poll_id != poll_id:
            raise InvalidOption(poll_id, option_id)

        stmt = (
            dialect_insert(db, PollVote)
            .values(poll_id=poll_id, option_id=option_id, actor_id=actor_id, created_at=now)
            .on_conflict_do_nothing(index_elements=["poll_id", "actor_id"])
            .returning(PollVote.id)
        )
        vote_id = (await db.execute(stmt)).scalar_one_or_none()
        if vote_id is None:
            raise AlreadyVoted(poll_id, actor_id)

        await db.execute(
            update(PollOption)
            .where(PollOption.id == option_id)
            .values(votes=PollOption.votes + 1)
            .execution_options(synchronize_session=False)
        )
        await record_activity(
            db,
            actor_id,
            "poll_voted",
            target_id=poll_id,
            target_type=TargetType.POLL,
            details="Voted on a poll",
            metadata={"option_id": option_id},
        )

    logger.bind(actor_id=actor_id, poll_id=poll_id, option_id=option_id).info("vote_cast")
    return await db.get_one(PollVote, vote_id)


async def reconcile_poll_counts(db: AsyncSession, poll_id: int) -> list[OptionDrift]:
    """Recompute every option counter on a poll from its vote rows."""
    async with unit_of_work(db, "reconcile_poll_counts"):
        if await db.get(Poll, poll_id) is None:
            raise TargetNotFound(TargetType.POLL.value, poll_id)

        result = await db.execute(
            select(PollVote.option_id, func.count(PollVote.id))
            .where(PollVote.poll_id == poll_id)
            .group_by(PollVote.option_id)
        )
        actual_counts = {option_id: count for option_id, count in result.all()}

        options = await db.execute(
            select(PollOption)
            .where(PollOption.poll_id == poll_id)
            .execution_options(populate_existing=True)
        )
        drift: list[OptionDrift] = []
        for option in options.scalars():
            actual = actual_counts.get(option.id, 0)
            if option.votes != actual:
                drift.append(OptionDrift(option.id, option.votes, actual))
                option.votes = actual

    if drift:
        logger.bind(poll_id=poll_id, options=[d.option_id for d in drift]).warning(
            "poll_counts_repaired"
        )
    return drift


async def reconcile_all_polls(db: AsyncSession) -> dict[int, list[OptionDrift]]:
    poll_ids = (await db.scalars(select(Poll.id).order_by(Poll.id))).all()
    repaired = {}
    for poll_id in poll_ids:
        drift = await reconcile_poll_counts(db, poll_id)
        if drift:
            repaired[poll_id] = drift
    return repaired


# =============================================================================
# RSVPs
# =============================================================================


async def set_rsvp(db: AsyncSession, actor_id: str, event_id: int, status: RSVPStatus) -> RSVP:
    """Create the actor's RSVP or update its status in place."""
    now = utc_now()

    async with unit_of_work(db, "set_rsvp"):
        await ensure_target_exists(db, TargetType.EVENT, event_id)

        stmt = dialect_insert(db, RSVP).values(
            event_id=event_id,
            actor_id=actor_id,
            status=status,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["event_id", "actor_id"],
            set_={"status": stmt.excluded.status, "updated_at": stmt.excluded.updated_at},
        ).returning(RSVP.id, RSVP.created_at)
        row = (await db.execute(stmt)).one()
        created = row.created_at == now

        await record_activity(
            db,
            actor_id,
            "event_rsvp",
            target_id=event_id,
            target_type=TargetType.EVENT,
            details=f"RSVP'd {status.value}" if created else f"Changed RSVP to {status.value}",
            metadata={"status": status.value},
        )

    logger.bind(actor_id=actor_id, event_id=event_id, status=status.value, created=created).info(
        "rsvp_set"
    )
    return await db.get_one(RSVP, row.id, populate_existing=True)


async def remove_rsvp(db: AsyncSession, actor_id: str, event_id: int) -> bool:
    """Delete the actor's RSVP. Returns False if there was none."""
    async with unit_of_work(db, "remove_rsvp"):
        await ensure_target_exists(db, TargetType.EVENT, event_id)
        result = await db.execute(
            delete(RSVP).where(RSVP.actor_id == actor_id, RSVP.event_id == event_id)
        )
    return result.rowcount > 0
