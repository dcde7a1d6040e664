"""
Tests for datetime utilities.
"""

from datetime import datetime, timezone

import pytest

from tasker.utils.datetime_utils import (
    add_days,
    add_months,
    end_of_day,
    format_date,
    format_iso_date,
    is_same_day,
    to_local_naive,
)


class TestDatetimeUtils:
    """Tests for date arithmetic and formatting helpers."""

    def test_end_of_day(self):
        assert end_of_day(datetime(2024, 3, 15, 8, 30)) == datetime(2024, 3, 15, 23, 59, 59, 999000)

    def test_naive_datetimes_are_unchanged(self):
        dt = datetime(2024, 3, 15, 8, 30)

        assert to_local_naive(dt) is dt

    def test_aware_datetimes_become_naive(self):
        aware = datetime(2024, 3, 15, 8, 30, tzinfo=timezone.utc)

        assert to_local_naive(aware).tzinfo is None

    def test_add_days_crosses_month(self):
        assert add_days(datetime(2024, 2, 28), 2) == datetime(2024, 3, 1)

    @pytest.mark.parametrize("start,expected", [
        (datetime(2024, 1, 15), datetime(2024, 2, 15)),
        (datetime(2024, 1, 31), datetime(2024, 2, 29)),
        (datetime(2023, 1, 31), datetime(2023, 2, 28)),
        (datetime(2024, 12, 10), datetime(2025, 1, 10)),
    ])
    def test_add_months_clamps(self, start, expected):
        assert add_months(start, 1) == expected

    def test_is_same_day(self):
        assert is_same_day(datetime(2024, 3, 15, 0, 0), datetime(2024, 3, 15, 23, 59))
        assert not is_same_day(datetime(2024, 3, 15), datetime(2024, 4, 15))

    def test_format_date(self):
        assert format_date(datetime(2024, 3, 5, 23, 59)) == "3/5/2024"
        assert format_date(None) == ""

    def test_format_iso_date(self):
        assert format_iso_date(datetime(2024, 3, 5, 23, 59)) == "2024-03-05"
        assert format_iso_date(None) == ""
