"""
Calendar helpers for billing. All stored instants are UTC.

Reporting periods (this week, this month, the last twelve months) and
inclusive date filters are computed on UTC calendar days, then turned into
half-open [start, end) instant ranges for SQL.
"""

from datetime import date, datetime, time, timedelta, timezone


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def today_utc() -> date:
    return now_utc().date()


def start_of_day_utc(day: date | None = None) -> datetime:
    """Midnight UTC of the given day (today if omitted)."""
    return datetime.combine(day or today_utc(), time.min, tzinfo=timezone.utc)


def start_of_week(day: date) -> date:
    """The Sunday on or before day."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def first_of_month(day: date, months_back: int = 0) -> date:
    """First day of day's month, or of the month months_back before it."""
    index = day.year * 12 + (day.month - 1) - months_back
    return date(index // 12, index % 12 + 1, 1)


def trailing_months(today: date, count: int = 12) -> list[date]:
    """First days of the last count months, oldest first, ending with today's month."""
    return [first_of_month(today, back) for back in range(count - 1, -1, -1)]


def utc_day_range(date_from: date | None, date_to: date | None) -> tuple[datetime | None, datetime | None]:
    """
    Inclusive calendar-day filter as a half-open instant range.

    Either bound may be None (open-ended). 2025-03-01..2025-03-31 becomes
    [2025-03-01T00:00Z, 2025-04-01T00:00Z).
    """
    start = start_of_day_utc(date_from) if date_from is not None else None
    end = start_of_day_utc(date_to + timedelta(days=1)) if date_to is not None else None
    return start, end

