"""
Report time windows.

Windows are half-open `[start, end)` intervals in UTC. Month-to-date and
year-to-date windows are anchored on the first instant of the current
month / year.
"""

import calendar
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Optional

from src.services.readers.base import ClaimFilter
from src.utils.dates import as_utc


@dataclass(frozen=True)
class ReportWindow:
    start: datetime
    end: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.end is not None and self.end <= self.start:
            raise ValueError("Window end must be after its start")

    def as_filter(self) -> ClaimFilter:
        return ClaimFilter(created_from=self.start, created_before=self.end)


def start_of_month(year: int, month: int) -> datetime:
    return datetime(year, month, 1, tzinfo=UTC)


def start_of_year(year: int) -> datetime:
    return datetime(year, 1, 1, tzinfo=UTC)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_window(year: int, month: int) -> ReportWindow:
    """The whole calendar month."""
    if month == 12:
        end = start_of_month(year + 1, 1)
    else:
        end = start_of_month(year, month + 1)
    return ReportWindow(start=start_of_month(year, month), end=end)


def year_window(year: int) -> ReportWindow:
    """The whole calendar year."""
    return ReportWindow(start=start_of_year(year), end=start_of_year(year + 1))


def month_to_date(now: datetime) -> ReportWindow:
    now = as_utc(now)
    return ReportWindow(start=start_of_month(now.year, now.month))


def year_to_date(now: datetime) -> ReportWindow:
    now = as_utc(now)
    return ReportWindow(start=start_of_year(now.year))


def date_range_window(start_date: Optional[date], end_date: Optional[date]) -> Optional[ClaimFilter]:
    """
    Filter for an inclusive range of calendar days.

    Either bound may be missing; with neither, no filter applies. An end on
    the last representable day leaves the range open-ended.
    """
    if start_date is None and end_date is None:
        return None
    created_from = None
    created_before = None
    if start_date is not None:
        created_from = datetime(start_date.year, start_date.month, start_date.day, tzinfo=UTC)
    if end_date is not None and end_date < date.max:
        created_before = datetime(end_date.year, end_date.month, end_date.day, tzinfo=UTC) + timedelta(days=1)
    return ClaimFilter(created_from=created_from, created_before=created_before)
