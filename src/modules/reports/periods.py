"""Calendar-month reporting periods in the store's local time zone."""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional

from django.utils import timezone
from pydantic import BaseModel, ConfigDict


class ReportPeriod(BaseModel):
    """A closed ``[start, end]`` range covering one calendar month."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    year: int
    month: int

    @property
    def label(self) -> str:
        return f"{self.month:02d}/{self.year}"


def month_period(year: int, month: int, tz: Optional[tzinfo] = None) -> ReportPeriod:
    """Period for ``month`` of ``year``; raises ``ValueError`` on a bad month."""
    tz = tz or timezone.get_current_timezone()
    _, days = calendar.monthrange(year, month)
    return ReportPeriod(
        start=datetime.combine(date(year, month, 1), time.min, tzinfo=tz),
        end=datetime.combine(date(year, month, days), time.max, tzinfo=tz),
        year=year,
        month=month,
    )


def last_full_month(today: Optional[date] = None, tz: Optional[tzinfo] = None) -> ReportPeriod:
    """The most recent month that has fully ended before ``today``."""
    today = today or timezone.localdate()
    previous = today.replace(day=1) - timedelta(days=1)
    return month_period(previous.year, previous.month, tz=tz)


def previous_period(period: ReportPeriod) -> ReportPeriod:
    """The month right before ``period``."""
    return last_full_month(period.start.date(), tz=period.start.tzinfo)
