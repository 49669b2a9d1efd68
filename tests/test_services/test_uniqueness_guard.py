"""Tests for the uniqueness guard: like toggles, single votes and RSVP upserts."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from focusroom.core.datetime_utils import utc_now
from focusroom.core.errors import (
    AlreadyVoted,
    DuplicateEngagement,
    InvalidOption,
    PollClosed,
    TargetNotFound,
)
from focusroom.models.content import PollOption
from focusroom.models.engagement import (
    RSVP,
    ActivityRecord,
    Like,
    PollVote,
    RSVPStatus,
    TargetType,
)
from focusroom.services.uniqueness_guard import (
    LikeSwitch,
    cast_vote,
    reconcile_all_polls,
    reconcile_poll_counts,
    remove_rsvp,
    set_rsvp,
    toggle_like,
)

pytestmark = pytest.mark.asyncio


async def _like_rows(db, actor_id: str, target_id: int) -> int:
    return await db.scalar(
        select(func.count(Like.id)).where(Like.actor_id == actor_id, Like.target_id == target_id)
    )


class TestToggleLike:
    """Tests for toggle_like."""

    async def test_odd_toggles_leave_like_active(self, db_session, event_factory):
        """Should end active after an odd number of toggles and inactive after an even one."""
        event = await event_factory()
        event_id = event.id

        states = []
        for _ in range(5):
            result = await toggle_like(db_session, "user_a", event_id, TargetType.EVENT)
            states.append(result.active)

        assert states == [True, False, True, False, True]
        assert await _like_rows(db_session, "user_a", event_id) == 1

    async def test_like_count_reflects_all_actors(self, db_session, spotlight_factory):
        """Should report the target's total likes after each toggle."""
        spotlight = await spotlight_factory()

        first = await toggle_like(db_session, "user_a", spotlight.id, TargetType.SPOTLIGHT)
        second = await toggle_like(db_session, "user_b", spotlight.id, TargetType.SPOTLIGHT)

        assert first.like_count == 1
        assert second.like_count == 2

    async def test_unknown_target_rejected(self, db_session):
        """Should raise TargetNotFound for a target that doesn't exist."""
        with pytest.raises(TargetNotFound):
            await toggle_like(db_session, "user_a", 999, TargetType.POLL)

    async def test_stale_read_is_retried_against_new_state(self, db_session, event_factory):
        """A like removed between read and delete should be re-evaluated, not duplicated."""
        event = await event_factory()
        event_id = event.id
        await toggle_like(db_session, "user_a", event_id, TargetType.EVENT)

        real_deactivate = LikeSwitch.deactivate
        calls = {"count": 0}

        async def flaky_deactivate(self):
            calls["count"] += 1
            if calls["count"] == 1:
                return False
            return await real_deactivate(self)

        with patch.object(LikeSwitch, "deactivate", flaky_deactivate):
            result = await toggle_like(db_session, "user_a", event_id, TargetType.EVENT)

        assert calls["count"] == 2
        assert result.active is False
        assert await _like_rows(db_session, "user_a", event_id) == 0

    async def test_conflicting_insert_never_duplicates(self, db_session, event_factory):
        """An insert that loses the race should not create a second row."""
        event = await event_factory()
        event_id = event.id
        await toggle_like(db_session, "user_a", event_id, TargetType.EVENT)

        # A second activate on an active switch reports the conflict instead of inserting
        switch = LikeSwitch(db_session, "user_a", event_id, TargetType.EVENT)
        assert await switch.activate() is False
        await db_session.commit()

        assert await _like_rows(db_session, "user_a", event_id) == 1

    async def test_persistent_conflict_raises_duplicate(self, db_session, event_factory):
        """Should give up with DuplicateEngagement when every attempt conflicts."""
        event = await event_factory()

        async def always_lose(self):
            return False

        with patch.object(LikeSwitch, "activate", always_lose):
            with pytest.raises(DuplicateEngagement):
                await toggle_like(db_session, "user_a", event.id, TargetType.EVENT, max_attempts=2)

    async def test_like_records_activity(self, db_session, event_factory):
        """Should write a post_liked activity record with the like."""
        event = await event_factory()

        await toggle_like(db_session, "user_a", event.id, TargetType.EVENT)

        actions = (await db_session.scalars(select(ActivityRecord.action))).all()
        assert actions == ["post_liked"]


class TestCastVote:
    """Tests for cast_vote."""

    async def test_vote_increments_option(self, db_session, poll_factory):
        """Should insert the vote and bump only the chosen option."""
        poll = await poll_factory()
        poll_id = poll.id
        first_id, second_id = poll.options[0].id, poll.options[1].id

        vote = await cast_vote(db_session, "user_a", poll_id, first_id)

        assert vote.poll_id == poll_id
        assert vote.option_id == first_id
        first = await db_session.get(PollOption, first_id, populate_existing=True)
        second = await db_session.get(PollOption, second_id, populate_existing=True)
        assert first.votes == 1
        assert second.votes == 0

    async def test_second_vote_rejected(self, db_session, poll_factory):
        """Should reject a second vote and leave both counters untouched."""
        poll = await poll_factory()
        poll_id = poll.id
        first_id, second_id = poll.options[0].id, poll.options[1].id

        await cast_vote(db_session, "user_a", poll_id, first_id)

        with pytest.raises(AlreadyVoted) as exc_info:
            await cast_vote(db_session, "user_a", poll_id, second_id)

        assert exc_info.value.code == "already_voted"
        first = await db_session.get(PollOption, first_id, populate_existing=True)
        second = await db_session.get(PollOption, second_id, populate_existing=True)
        assert first.votes == 1
        assert second.votes == 0

    async def test_counters_match_vote_rows(self, db_session, poll_factory):
        """Sum of option counters should equal the number of vote rows."""
        poll = await poll_factory(options=["A", "B", "C"])
        poll_id = poll.id
        option_ids = [option.id for option in poll.options]

        for i, actor in enumerate(["u1", "u2", "u3", "u4", "u5"]):
            await cast_vote(db_session, actor, poll_id, option_ids[i % 3])
        with pytest.raises(AlreadyVoted):
            await cast_vote(db_session, "u1", poll_id, option_ids[2])

        total = await db_session.scalar(
            select(func.sum(PollOption.votes)).where(PollOption.poll_id == poll_id)
        )
        rows = await db_session.scalar(
            select(func.count(PollVote.id)).where(PollVote.poll_id == poll_id)
        )
        assert total == rows == 5

    async def test_option_from_other_poll_rejected(self, db_session, poll_factory):
        """Should raise InvalidOption when the option belongs to a different poll."""
        poll = await poll_factory()
        other = await poll_factory(question="Other?")

        with pytest.raises(InvalidOption):
            await cast_vote(db_session, "user_a", poll.id, other.options[0].id)

    async def test_closed_poll_rejected(self, db_session, poll_factory):
        """Should raise PollClosed for inactive or ended polls."""
        inactive = await poll_factory(is_active=False)
        ended = await poll_factory(ends_at=utc_now() - timedelta(hours=1))
        inactive_ids = (inactive.id, inactive.options[0].id)
        ended_ids = (ended.id, ended.options[0].id)

        with pytest.raises(PollClosed):
            await cast_vote(db_session, "user_a", *inactive_ids)
        with pytest.raises(PollClosed):
            await cast_vote(db_session, "user_a", *ended_ids)

    async def test_unknown_poll_rejected(self, db_session):
        """Should raise TargetNotFound for a missing poll."""
        with pytest.raises(TargetNotFound):
            await cast_vote(db_session, "user_a", 404, 1)


class TestReconcile:
    """Tests for poll counter reconciliation."""

    async def test_repairs_drifted_counters(self, db_session, poll_factory):
        """Should reset counters to the number of vote rows."""
        poll = await poll_factory()
        poll_id = poll.id
        first_id, second_id = poll.options[0].id, poll.options[1].id
        await cast_vote(db_session, "user_a", poll_id, first_id)

        second = await db_session.get(PollOption, second_id)
        second.votes = 7
        await db_session.commit()

        drift = await reconcile_poll_counts(db_session, poll_id)

        assert [(d.option_id, d.recorded, d.actual) for d in drift] == [(second_id, 7, 0)]
        second = await db_session.get(PollOption, second_id, populate_existing=True)
        assert second.votes == 0

    async def test_consistent_polls_report_nothing(self, db_session, poll_factory):
        """Should return no drift when counters already match."""
        poll = await poll_factory()
        await cast_vote(db_session, "user_a", poll.id, poll.options[0].id)

        assert await reconcile_all_polls(db_session) == {}


class TestRSVP:
    """Tests for set_rsvp and remove_rsvp."""

    async def test_second_rsvp_updates_in_place(self, db_session, event_factory):
        """Should keep one row per actor and event, with the latest status."""
        event = await event_factory()
        event_id = event.id

        first = await set_rsvp(db_session, "user_a", event_id, RSVPStatus.MAYBE)
        second = await set_rsvp(db_session, "user_a", event_id, RSVPStatus.ATTENDING)

        assert first.id == second.id
        assert second.status == RSVPStatus.ATTENDING
        rows = await db_session.scalar(select(func.count(RSVP.id)).where(RSVP.event_id == event_id))
        assert rows == 1

    async def test_rsvp_activity_distinguishes_change(self, db_session, event_factory):
        """Should describe the first RSVP and later changes differently."""
        event = await event_factory()

        await set_rsvp(db_session, "user_a", event.id, RSVPStatus.MAYBE)
        await set_rsvp(db_session, "user_a", event.id, RSVPStatus.DECLINED)

        details = (
            await db_session.scalars(select(ActivityRecord.details).order_by(ActivityRecord.id))
        ).all()
        assert details == ["RSVP'd maybe", "Changed RSVP to declined"]

    async def test_remove_rsvp(self, db_session, event_factory):
        """Should delete the RSVP once and report nothing to delete afterwards."""
        event = await event_factory()
        await set_rsvp(db_session, "user_a", event.id, RSVPStatus.ATTENDING)

        assert await remove_rsvp(db_session, "user_a", event.id) is True
        assert await remove_rsvp(db_session, "user_a", event.id) is False

    async def test_rsvp_unknown_event(self, db_session):
        """Should raise TargetNotFound for a missing event."""
        with pytest.raises(TargetNotFound):
            await set_rsvp(db_session, "user_a", 12345, RSVPStatus.MAYBE)
