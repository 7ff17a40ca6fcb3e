"""Calendar helpers: local days in a timezone and backfill month windows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Literal, Optional, Tuple
from zoneinfo import ZoneInfo

DaySelector = Literal["today", "yesterday"]
YearMonth = Tuple[int, int]


@dataclass(frozen=True)
class DayContext:
    """The plant-day a run resolves, as seen in the sync timezone."""

    day: date
    today: date
    tz: str

    @property
    def is_today(self) -> bool:
        return self.day == self.today

    @property
    def selector(self) -> DaySelector:
        return "today" if self.is_today else "yesterday"


def local_today(tz: str, now: Optional[datetime] = None) -> date:
    zone = ZoneInfo(tz)
    now = now.astimezone(zone) if now else datetime.now(zone)
    return now.date()


def day_context(selector: DaySelector, tz: str, now: Optional[datetime] = None) -> DayContext:
    today = local_today(tz, now)
    day = today if selector == "today" else today - timedelta(days=1)
    return DayContext(day=day, today=today, tz=tz)


def months_back(today: date, n_back: int) -> List[YearMonth]:
    """Current month followed by the ``n_back`` previous months, newest first."""
    out: List[YearMonth] = []
    y, m = today.year, today.month
    for _ in range(max(n_back, 0) + 1):
        out.append((y, m))
        y, m = (y - 1, 12) if m == 1 else (y, m - 1)
    return out


def months_since(today: date, anchor_month: int) -> List[YearMonth]:
    """Months from the latest ``anchor_month`` up to the current month, oldest first.

    Before the anchor month in the calendar year, the window starts at the
    anchor month of the previous year.
    """
    start_year = today.year if today.month >= anchor_month else today.year - 1
    out: List[YearMonth] = []
    y, m = start_year, anchor_month
    while (y, m) <= (today.year, today.month):
        out.append((y, m))
        y, m = (y + 1, 1) if m == 12 else (y, m + 1)
    return out


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First day of the month and first day of the next month."""
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def end_of_month(year: int, month: int) -> date:
    return month_bounds(year, month)[1] - timedelta(days=1)


def parse_day(value: str) -> Optional[date]:
    """Accepts ``YYYY-MM-DD`` and ``YYYYMMDD``."""
    if not value:
        return None
    value = value.strip()
    try:
        if len(value) == 8 and value.isdigit():
            return date(int(value[:4]), int(value[4:6]), int(value[6:]))
        return date.fromisoformat(value[:10])
    except ValueError:
        return None
