"""Tests for utils/timezone.py - UTC-everywhere time handling."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from utils.timezone import now_utc, from_unix_seconds, unix_millis


class TestNowUtc:
    """Tests for now_utc()."""

    def test_is_utc(self):
        """Result timezone must be specifically UTC."""
        assert now_utc().tzinfo == timezone.utc


class TestFromUnixSeconds:
    """Tests for from_unix_seconds()."""

    def test_converts_stripe_timestamp(self):
        result = from_unix_seconds(1700000000)
        assert result == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    def test_raises_on_negative(self):
        with pytest.raises(ValueError, match="Invalid Unix timestamp"):
            from_unix_seconds(-1)


class TestUnixMillis:
    """Tests for unix_millis()."""

    def test_epoch_is_zero(self):
        assert unix_millis(datetime(1970, 1, 1, tzinfo=timezone.utc)) == 0

    def test_other_timezone_same_instant(self):
        """Same instant in Chicago and UTC gives the same millis."""
        chicago = datetime(2024, 1, 1, 12, 0, 0, tzinfo=ZoneInfo("America/Chicago"))
        utc = datetime(2024, 1, 1, 18, 0, 0, tzinfo=timezone.utc)
        assert unix_millis(chicago) == unix_millis(utc)

    def test_raises_on_naive(self):
        """Naive datetime must raise ValueError."""
        with pytest.raises(ValueError, match="naive"):
            unix_millis(datetime(2024, 1, 1, 12, 0, 0))
