"""
Calendar helpers for screening and reminder due dates.

Screening dates are stored with month precision ("YYYY-MM"). Due dates are
the first day of the month `interval` months after the recorded month, so a
test done in 2025-01 on a 12-month interval is due on 2026-01-01 and becomes
overdue from 2026-01-02 onward.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime

from health_core.result import Result

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


@dataclass(frozen=True, order=True)
class YearMonth:
    """A calendar month (no day component)."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {self.month}")

    def add_months(self, months: int) -> "YearMonth":
        index = self.year * 12 + (self.month - 1) + months
        return YearMonth(year=index // 12, month=index % 12 + 1)

    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    def label(self) -> str:
        """Human-readable form, e.g. 'Mar 2026'."""
        return f"{MONTH_ABBREVIATIONS[self.month - 1]} {self.year}"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @classmethod
    def from_date(cls, value: date) -> "YearMonth":
        return cls(year=value.year, month=value.month)


def parse_year_month(value: str) -> Result[YearMonth, ValueError]:
    """Parse a stored 'YYYY-MM' (or longer ISO date) string.

    Malformed values come from storage, so they are returned as errors
    instead of raised.
    """
    parts = value.strip().split("-")
    if len(parts) < 2:
        return Result.err(ValueError(f"Expected YYYY-MM, got {value!r}"))
    try:
        year = int(parts[0])
        month = int(parts[1][:2])
    except ValueError:
        return Result.err(ValueError(f"Expected YYYY-MM, got {value!r}"))
    if year <= 0 or not 1 <= month <= 12:
        return Result.err(ValueError(f"Expected YYYY-MM, got {value!r}"))
    return Result.ok(YearMonth(year=year, month=month))


def as_date(value: date | datetime) -> date:
    """Drop the time component; datetimes are compared by calendar day."""
    if isinstance(value, datetime):
        return value.date()
    return value


def add_months(value: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the target month's length."""
    index = value.year * 12 + (value.month - 1) + months
    year, month = index // 12, index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def is_older_than_months(when: date | datetime, months: int, now: date | datetime) -> bool:
    """True when `now` is strictly after `when` + `months`."""
    return as_date(now) > add_months(as_date(when), months)


def is_past_due(due: YearMonth, now: date | datetime) -> bool:
    """Strict comparison: the due month's first day itself is not yet overdue.

    Compared by calendar day, so any time on the 1st still counts as on time.
    """
    return as_date(now) > due.first_day()


def format_month_label(value: date | datetime) -> str:
    """Format a date as 'Mon YYYY'."""
    return YearMonth.from_date(as_date(value)).label()
