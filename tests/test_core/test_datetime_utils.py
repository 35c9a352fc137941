"""Tests for UTC helpers in datetime_utils."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from cragsync.core.datetime_utils import (
    get_cutoff,
    get_expiry,
    parse_api_datetime,
    to_naive_utc,
    utc_now,
)


class TestUtcNow:
    def test_is_naive(self):
        """Should return naive datetime for database columns."""
        assert utc_now().tzinfo is None

    def test_matches_aware_utc(self):
        delta = datetime.now(UTC).replace(tzinfo=None) - utc_now()
        assert abs(delta) < timedelta(seconds=5)


class TestCutoffAndExpiry:
    """Tests for get_cutoff and get_expiry."""

    def test_cutoff_is_in_the_past(self):
        cutoff = get_cutoff(hours=24)
        assert utc_now() - cutoff >= timedelta(hours=24)
        assert utc_now() - cutoff < timedelta(hours=24, seconds=5)

    def test_cutoff_combines_days_and_hours(self):
        assert utc_now() - get_cutoff(days=1, hours=1) >= timedelta(hours=25)

    def test_expiry_is_in_the_future(self):
        expiry = get_expiry(hours=24)
        assert expiry - utc_now() > timedelta(hours=23, minutes=59)

    def test_zero_is_now(self):
        assert abs(get_expiry() - utc_now()) < timedelta(seconds=5)


class TestToNaiveUtc:
    def test_naive_is_unchanged(self):
        """Should assume naive input is already UTC."""
        value = datetime(2026, 5, 1, 12, 0)
        assert to_naive_utc(value) == value

    def test_aware_is_converted(self):
        pacific = timezone(timedelta(hours=-7))
        value = datetime(2026, 5, 1, 5, 0, tzinfo=pacific)
        assert to_naive_utc(value) == datetime(2026, 5, 1, 12, 0)


class TestParseApiDatetime:
    """Tests for Kaya timestamp parsing."""

    def test_rfc3339_with_z(self):
        assert parse_api_datetime("2026-05-01T12:30:00Z") == datetime(2026, 5, 1, 12, 30)

    def test_offset_is_normalized_to_utc(self):
        assert parse_api_datetime("2026-05-01T05:30:00-07:00") == datetime(2026, 5, 1, 12, 30)

    def test_plain_date(self):
        assert parse_api_datetime("2026-05-01") == datetime(2026, 5, 1)

    def test_empty_is_none(self):
        assert parse_api_datetime("") is None
        assert parse_api_datetime(None) is None

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_api_datetime("last tuesday")
