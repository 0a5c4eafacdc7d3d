"""Unit tests for calendar-month report periods."""

from __future__ import annotations

from datetime import date, time, timedelta
from zoneinfo import ZoneInfo

import pytest

from modules.reports.periods import last_full_month, month_period, previous_period

pytestmark = pytest.mark.unit

HCM = ZoneInfo("Asia/Ho_Chi_Minh")


class TestLastFullMonth:
    @pytest.mark.parametrize(
        "today, year, month, last_day",
        [
            (date(2026, 10, 1), 2026, 9, 30),
            (date(2026, 10, 19), 2026, 9, 30),
            (date(2026, 1, 1), 2025, 12, 31),
            (date(2024, 3, 1), 2024, 2, 29),
            (date(2025, 3, 31), 2025, 2, 28),
            (date(2026, 8, 1), 2026, 7, 31),
        ],
    )
    def test_previous_calendar_month(self, today, year, month, last_day):
        period = last_full_month(today, tz=HCM)

        assert (period.year, period.month) == (year, month)
        assert period.start.date() == date(year, month, 1)
        assert period.end.date() == date(year, month, last_day)

    def test_bounds_cover_whole_days_in_store_zone(self):
        period = last_full_month(date(2026, 10, 1), tz=HCM)

        assert period.start.time() == time.min
        assert period.end.time() == time.max
        assert period.start.utcoffset() == period.end.utcoffset()
        assert period.start.utcoffset() == timedelta(hours=7)

    def test_defaults_to_current_timezone(self, settings):
        period = last_full_month(date(2026, 10, 1))
        assert settings.TIME_ZONE == "Asia/Ho_Chi_Minh"
        assert period.start.utcoffset() == timedelta(hours=7)

    def test_label(self):
        assert last_full_month(date(2026, 2, 14), tz=HCM).label == "01/2026"


class TestMonthPeriod:
    def test_invalid_month_rejected(self):
        with pytest.raises(ValueError):
            month_period(2026, 13, tz=HCM)

    def test_previous_period_wraps_year(self):
        january = month_period(2026, 1, tz=HCM)
        december = previous_period(january)
        assert (december.year, december.month) == (2025, 12)
        assert december.end.date() == date(2025, 12, 31)
