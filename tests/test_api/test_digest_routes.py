"""Tests for digest endpoints."""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from focusroom.core.datetime_utils import utc_now
from focusroom.models.digest import DigestRun

pytestmark = pytest.mark.asyncio

# Matches TestSettings.cron_secret in conftest
CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


class TestCronEndpoint:
    """Tests for /api/cron/weekly-digest."""

    async def test_rejects_missing_secret(self, client: AsyncClient):
        """Should return 401 without the bearer secret."""
        response = await client.post("/api/cron/weekly-digest")

        assert response.status_code == 401

    async def test_rejects_wrong_secret(self, client: AsyncClient):
        """Should return 401 for a wrong bearer secret."""
        response = await client.get(
            "/api/cron/weekly-digest", headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == 401

    async def test_runs_then_skips(
        self, client: AsyncClient, db_session, user_factory, mock_delivery
    ):
        """First hit sends the digest, the second is a no-op inside the window."""
        await user_factory()

        first = await client.post("/api/cron/weekly-digest", headers=CRON_HEADERS)
        second = await client.get("/api/cron/weekly-digest", headers=CRON_HEADERS)

        assert first.status_code == 200
        assert first.json()["ran"] is True
        assert first.json()["recipient_count"] == 1
        assert second.json()["ran"] is False
        assert second.json()["reason"] == "within window"
        assert mock_delivery.send.call_count == 1
        assert await db_session.scalar(select(func.count()).select_from(DigestRun)) == 1

    async def test_no_recipients_maps_to_typed_error(self, client: AsyncClient):
        """Should surface NoRecipients as a typed error body."""
        response = await client.post("/api/cron/weekly-digest", headers=CRON_HEADERS)

        assert response.status_code == 422
        assert response.json()["error"] == "no_recipients"


class TestManualSend:
    """Tests for POST /api/digest/send."""

    async def test_requires_admin(self, client: AsyncClient, auth_cookies):
        """Members should get 403."""
        _, cookies = await auth_cookies()

        response = await client.post("/api/digest/send", cookies=cookies)

        assert response.status_code == 403

    async def test_admin_send_records_sender(self, client: AsyncClient, db_session, auth_cookies):
        """Should run the cycle and record the admin as sender."""
        admin, cookies = await auth_cookies(role="admin")

        response = await client.post("/api/digest/send", cookies=cookies)

        assert response.status_code == 200
        assert response.json()["ran"] is True
        run = (await db_session.scalars(select(DigestRun))).one()
        assert run.sent_by == admin.id
        assert run.trigger == "manual"

    async def test_window_still_applies(
        self, client: AsyncClient, auth_cookies, digest_run_factory
    ):
        """A manual trigger inside the window should be skipped."""
        _, cookies = await auth_cookies(role="admin")
        await digest_run_factory(sent_at=utc_now() - timedelta(days=3))

        response = await client.post("/api/digest/send", cookies=cookies)

        assert response.json()["ran"] is False
        assert response.json()["reason"] == "within window"


class TestDigestQueries:
    """Tests for preview, last, history and schedule."""

    async def test_preview(self, client: AsyncClient, auth_cookies, event_factory):
        """Should render the next digest for admins."""
        _, cookies = await auth_cookies(role="admin")
        await event_factory(title="Release party")

        response = await client.get("/api/digest/preview", cookies=cookies)

        assert response.status_code == 200
        data = response.json()
        assert data["eligible"] is True
        assert data["counts"]["events"] == 1
        assert "Release party" in data["html"]
        assert data["subject"].endswith("New Activity")

    async def test_last_requires_auth(self, client: AsyncClient):
        """Should return 401 without a session."""
        response = await client.get("/api/digest/last")

        assert response.status_code == 401

    async def test_last_and_history(self, client: AsyncClient, auth_cookies, digest_run_factory):
        """Should return the newest run and the history newest first."""
        _, cookies = await auth_cookies(role="admin")
        now = utc_now()
        await digest_run_factory(sent_at=now - timedelta(days=14), recipient_count=3)
        newest = await digest_run_factory(sent_at=now - timedelta(days=7), recipient_count=5)

        last = await client.get("/api/digest/last", cookies=cookies)
        history = await client.get("/api/digest/history", params={"limit": 5}, cookies=cookies)

        assert last.json()["id"] == str(newest.id)
        assert [r["recipient_count"] for r in history.json()["runs"]] == [5, 3]
        assert history.json()["limit"] == 5

    async def test_last_without_runs(self, client: AsyncClient, auth_cookies):
        """Should return null when no digest was ever sent."""
        _, cookies = await auth_cookies()

        response = await client.get("/api/digest/last", cookies=cookies)

        assert response.status_code == 200
        assert response.json() is None

    async def test_schedule_empty_when_disabled(self, client: AsyncClient, auth_cookies):
        """The in-process scheduler is not started under test."""
        _, cookies = await auth_cookies(role="admin")

        response = await client.get("/api/digest/schedule", cookies=cookies)

        assert response.status_code == 200
        assert response.json() == []
