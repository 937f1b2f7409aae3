# tests/test_temporal_policy.py
"""Unit tests for the first-Thursday calendar rule."""

from datetime import date, datetime, timezone
from unittest.mock import patch

from app.config import settings
from app.services.temporal_policy import is_restricted_day, local_now


class TestRestrictedDay:
    def test_first_thursday_is_restricted(self):
        assert is_restricted_day(date(2023, 11, 2)) is True

    def test_second_thursday_is_not_restricted(self):
        assert is_restricted_day(date(2023, 11, 9)) is False

    def test_other_weekday_in_first_week(self):
        assert is_restricted_day(date(2023, 11, 1)) is False   # Wednesday
        assert is_restricted_day(date(2023, 11, 3)) is False   # Friday

    def test_thursday_on_first_of_month(self):
        assert is_restricted_day(date(2024, 2, 1)) is True

    def test_thursday_on_seventh(self):
        assert is_restricted_day(date(2023, 9, 7)) is True

    def test_accepts_datetime(self):
        assert is_restricted_day(datetime(2023, 11, 2, 23, 59)) is True
        assert is_restricted_day(datetime(2023, 11, 9, 0, 0)) is False


class TestLocalNow:
    def test_converts_utc_to_facility_zone(self):
        utc = datetime(2023, 11, 3, 1, 0, tzinfo=timezone.utc)
        with patch("app.services.temporal_policy._utc_now", return_value=utc), \
                patch.object(settings, "TIMEZONE", "America/Bogota"):
            now = local_now()
        assert now == datetime(2023, 11, 2, 20, 0)
        assert now.tzinfo is None
        assert is_restricted_day(now) is True

    def test_wednesday_evening_locally_is_not_restricted(self):
        utc = datetime(2023, 11, 2, 2, 0, tzinfo=timezone.utc)
        with patch("app.services.temporal_policy._utc_now", return_value=utc), \
                patch.object(settings, "TIMEZONE", "America/Bogota"):
            assert is_restricted_day(local_now()) is False
