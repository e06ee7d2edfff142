from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


MONTH_ABBR = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    @property
    def report_kind(self) -> str:
        return "yearly" if self.slug == "yearly" else "monthly"


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def days_in_month(year: int, month: int) -> int:
    return (month_end(date(year, month, 1)) - date(year, month, 1)).days + 1


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    first = month_start(d)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return next_month - date.resolution


def add_months(d: date, count: int) -> date:
    """Shift by whole calendar months, clamping the day to the target month."""
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, min(d.day, days_in_month(year, month)))


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def month_label(d: date) -> str:
    return f"{MONTH_ABBR[d.month - 1]} {d.year}"


def parse_month_key(value: str) -> date:
    try:
        year_str, month_str = value.split("-")[:2]
        return date(int(year_str), int(month_str), 1)
    except ValueError as exc:
        raise ValueError(f"Invalid month {value!r}, expected YYYY-MM") from exc


def month_range(year: int, month: int) -> Period:
    first = date(year, month, 1)
    return Period("monthly", first, month_end(first))


def year_range(year: int) -> Period:
    return Period("yearly", date(year, 1, 1), date(year, 12, 31))


def resolve_period(
    period: Optional[str],
    start: Optional[str] = None,
    end: Optional[str] = None,
    *,
    year: Optional[int] = None,
    month: Optional[int] = None,
    today: Optional[date] = None,
) -> Period:
    today = today or local_today()
    if period == "yearly":
        return year_range(year or today.year)
    if period == "last_month":
        last_month_end = month_start(today) - date.resolution
        return month_range(last_month_end.year, last_month_end.month)
    if period == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        return Period("custom", start_date, end_date)

    # monthly
    return month_range(year or today.year, month or today.month)
