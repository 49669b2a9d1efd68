"""Tests for the activity aggregator."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from focusroom.core.datetime_utils import utc_now
from focusroom.core.errors import AggregationFailure
from focusroom.digest.aggregator import ActivitySet, collect

pytestmark = pytest.mark.asyncio


class TestCollect:
    """Tests for collect()."""

    async def test_window_filters_timestamped_streams(
        self, db_session, event_factory, poll_factory
    ):
        """Should include yesterday's event and drop a poll from ten days ago."""
        now = utc_now()
        event = await event_factory(created_at=now - timedelta(days=1))
        await poll_factory(created_at=now - timedelta(days=10))

        activity = await collect(db_session, now - timedelta(days=7))

        assert [e.id for e in activity.events] == [event.id]
        assert activity.polls == []
        assert activity.has_activity

    async def test_cutoff_is_inclusive(self, db_session, spotlight_factory, feedback_factory):
        """Rows created exactly at the cutoff belong to the window."""
        cutoff = utc_now() - timedelta(days=3)
        await spotlight_factory(created_at=cutoff)
        await feedback_factory(created_at=cutoff - timedelta(seconds=1))

        activity = await collect(db_session, cutoff)

        assert len(activity.spotlights) == 1
        assert activity.feedback == []

    async def test_projects_and_tasks_ignore_window_but_are_capped(
        self, db_session, project_factory
    ):
        """Projects and tasks have no timestamp; they are a capped sample."""
        for i in range(4):
            await project_factory(name=f"Project {i}", tasks=[f"Task {i}a", f"Task {i}b"])

        activity = await collect(db_session, utc_now(), stream_cap=3)

        assert len(activity.projects) == 3
        assert len(activity.tasks) == 3
        assert activity.events == []
        assert activity.has_activity

    async def test_empty_store_has_no_activity(self, db_session):
        """Should report no activity when every stream is empty."""
        activity = await collect(db_session, utc_now() - timedelta(days=7))

        assert not activity.has_activity
        assert activity.summary() == (
            "0 projects, 0 tasks, 0 events, 0 polls, 0 spotlights, 0 feedback items"
        )

    async def test_source_failure_fails_collection(self, db_session):
        """A failing source should raise AggregationFailure naming the source."""
        original_execute = db_session.execute
        calls = {"count": 0}

        async def flaky_execute(statement, *args, **kwargs):
            calls["count"] += 1
            # Third query is the spotlights stream
            if calls["count"] == 3:
                raise OperationalError("SELECT spotlights", {}, Exception("connection reset"))
            return await original_execute(statement, *args, **kwargs)

        with patch.object(db_session, "execute", flaky_execute):
            with pytest.raises(AggregationFailure) as exc_info:
                await collect(db_session, utc_now() - timedelta(days=7))

        assert exc_info.value.source == "spotlights"


class TestActivitySet:
    """Tests for ActivitySet helpers."""

    async def test_summary_counts_every_stream(self):
        """Should list counts in projects, tasks, events, polls, spotlights, feedback order."""
        activity = ActivitySet(
            since=utc_now(),
            events=[object(), object()],
            polls=[object()],
            feedback=[object()],
        )

        assert activity.summary() == (
            "0 projects, 0 tasks, 2 events, 1 polls, 0 spotlights, 1 feedback items"
        )
        assert activity.counts()["events"] == 2
