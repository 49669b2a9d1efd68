"""Tests for the digest lease."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from focusroom.core.datetime_utils import utc_now
from focusroom.core.errors import LeaseHeld
from focusroom.digest.lease import DIGEST_LEASE, acquire_lease, release_lease
from focusroom.models.digest import DigestLease

pytestmark = pytest.mark.asyncio


class TestLease:
    """Tests for acquire_lease and release_lease."""

    async def test_acquire_and_release(self, db_session):
        """Should persist the lease and delete it on release."""
        lease = await acquire_lease(db_session, DIGEST_LEASE, ttl_seconds=60)

        row = (await db_session.scalars(select(DigestLease))).one()
        assert row.holder == lease.holder

        assert await release_lease(db_session, lease)
        await db_session.commit()
        assert (await db_session.scalars(select(DigestLease))).all() == []

    async def test_second_acquire_is_refused(self, db_session):
        """Should raise LeaseHeld while the first holder's lease is live."""
        now = utc_now()
        first = await acquire_lease(db_session, DIGEST_LEASE, ttl_seconds=60, now=now)

        with pytest.raises(LeaseHeld) as exc_info:
            await acquire_lease(db_session, DIGEST_LEASE, ttl_seconds=60, now=now)

        assert exc_info.value.expires_at == first.expires_at

    async def test_expired_lease_is_taken_over(self, db_session):
        """A new holder should replace an expired one, and the old release is a no-op."""
        now = utc_now()
        stale = await acquire_lease(db_session, DIGEST_LEASE, ttl_seconds=1, now=now)

        fresh = await acquire_lease(
            db_session, DIGEST_LEASE, ttl_seconds=60, now=now + timedelta(seconds=5)
        )

        assert fresh.holder != stale.holder
        assert not await release_lease(db_session, stale)
        assert await release_lease(db_session, fresh)
