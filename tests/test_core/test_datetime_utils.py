"""Tests for datetime utilities."""

from datetime import UTC, datetime, timedelta, timezone

from focusroom.core.datetime_utils import (
    describe_elapsed,
    format_date,
    get_cutoff,
    is_expired,
    to_naive_utc,
    utc_now,
)

NOW = datetime(2026, 3, 11, 9, 0)


class TestUtcNow:
    """Tests for utc_now and to_naive_utc."""

    def test_returns_naive(self):
        """Should return a naive datetime."""
        assert utc_now().tzinfo is None

    def test_to_naive_utc_converts_offset(self):
        """Should shift aware datetimes to UTC before dropping tzinfo."""
        paris = datetime(2026, 3, 11, 10, 0, tzinfo=timezone(timedelta(hours=1)))

        assert to_naive_utc(paris) == datetime(2026, 3, 11, 9, 0)
        assert to_naive_utc(NOW) is NOW
        assert to_naive_utc(NOW.replace(tzinfo=UTC)) == NOW

    def test_is_expired(self):
        """Past timestamps are expired, future ones are not."""
        assert is_expired(utc_now() - timedelta(seconds=1))
        assert not is_expired(utc_now() + timedelta(minutes=1))


class TestGetCutoff:
    """Tests for get_cutoff."""

    def test_days_and_hours(self):
        """Should subtract the delta from the reference time."""
        assert get_cutoff(days=7, now=NOW) == datetime(2026, 3, 4, 9, 0)
        assert get_cutoff(hours=36, now=NOW) == datetime(2026, 3, 9, 21, 0)


class TestDescribeElapsed:
    """Tests for describe_elapsed."""

    def test_ranges(self):
        """Should pick the unit that reads naturally."""
        assert describe_elapsed(NOW - timedelta(seconds=20), NOW) == "less than a minute"
        assert describe_elapsed(NOW - timedelta(minutes=1), NOW) == "1 minute"
        assert describe_elapsed(NOW - timedelta(minutes=45), NOW) == "45 minutes"
        assert describe_elapsed(NOW - timedelta(hours=5), NOW) == "about 5 hours"
        assert describe_elapsed(NOW - timedelta(days=1), NOW) == "1 day"
        assert describe_elapsed(NOW - timedelta(days=7), NOW) == "7 days"
        assert describe_elapsed(NOW - timedelta(days=65), NOW) == "about 2 months"

    def test_future_is_clamped(self):
        """A since in the future should not produce negative durations."""
        assert describe_elapsed(NOW + timedelta(hours=1), NOW) == "less than a minute"


class TestFormatDate:
    """Tests for format_date."""

    def test_format(self):
        """Should format without zero padding."""
        assert format_date(datetime(2026, 3, 4, 18, 30)) == "Mar 4, 2026"

    def test_none(self):
        """Should return an empty string for missing dates."""
        assert format_date(None) == ""
