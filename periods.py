import calendar
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def month_period(year: int, month: int) -> Period:
    return Period(f"{year:04d}-{month:02d}", date(year, month, 1), month_end(year, month))


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    total = year * 12 + (month - 1) + delta
    return total // 12, total % 12 + 1


def previous_month(today: Optional[date] = None) -> Period:
    today = today or local_today()
    year, month = shift_month(today.year, today.month, -1)
    return month_period(year, month)


def parse_month(value: Optional[str], *, today: Optional[date] = None) -> Period:
    """Resolve a ``YYYY-MM`` string, defaulting to the current month."""
    if not value:
        today = today or local_today()
        return month_period(today.year, today.month)
    try:
        year_str, month_str = value.split("-", 1)
        year = int(year_str)
        month = int(month_str)
    except ValueError as exc:
        raise ValueError("Month must use the YYYY-MM format") from exc
    if not 1 <= month <= 12 or not 1970 <= year <= 3000:
        raise ValueError("Month out of range")
    return month_period(year, month)


def resolve_period(
    period: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    today: Optional[date] = None,
) -> Period:
    today = today or local_today()
    if period == "all":
        return Period("all", date(1970, 1, 1), today)
    if period == "last_month":
        return previous_month(today)
    if period == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        return Period("custom", start_date, end_date)

    # this month
    current = month_period(today.year, today.month)
    return Period("this_month", current.start, current.end)
