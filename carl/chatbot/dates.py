# chatbot/dates.py

"""
Date extraction for intent detection.

Turns the temporal part of a natural-language query into a concrete range:
    "what's missing for 2026?"     -> Jan 1 2026 .. Dec 31 2026
    "what's due tomorrow?"         -> tomorrow 00:00 .. 23:59:59.999
    "anything due in march"        -> March (this year, or next if already past)
    "how did I do last semester"   -> the previous fall / spring

Everything here is pure: no I/O and no shared state, so it is safe to call from
concurrent request handlers. `now` is injectable so tests can pin the calendar.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, TypeVar

MONTHS = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]
MONTH_ABBREVS = [
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
]

YEAR_PATTERN = re.compile(r"\b(20\d{2})\b")
NEXT_DAYS_PATTERN = re.compile(r"next\s+(\d{1,6})\s+days?")
# "next N days" past a year is not treated as a date filter
MAX_NEXT_DAYS = 366


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime
    description: str

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"DateRange start {self.start} is after end {self.end}")

    def to_dict(self):
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "description": self.description,
        }


def _start_of_day(d: datetime) -> datetime:
    return d.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(d: datetime) -> datetime:
    return d.replace(hour=23, minute=59, second=59, microsecond=999000)


def _single_day(d: datetime, description: str) -> DateRange:
    return DateRange(_start_of_day(d), _end_of_day(d), description)


def _week(sunday: datetime, description: str) -> DateRange:
    start = _start_of_day(sunday)
    return DateRange(start, _end_of_day(start + timedelta(days=6)), description)


def _month(year: int, month: int, description: str) -> DateRange:
    # month may be 13 when rolling "next month" past December
    if month > 12:
        year, month = year + 1, month - 12
    last_day = calendar.monthrange(year, month)[1]
    return DateRange(
        datetime(year, month, 1),
        datetime(year, month, last_day, 23, 59, 59),
        description,
    )


def _fall(year: int) -> DateRange:
    return DateRange(datetime(year, 8, 1), datetime(year, 12, 31, 23, 59, 59), f"fall {year}")


def _spring(year: int) -> DateRange:
    return DateRange(datetime(year, 1, 1), datetime(year, 5, 31, 23, 59, 59), f"spring {year}")


def _days_since_sunday(d: datetime) -> int:
    # Python: Monday == 0 ... Sunday == 6
    return (d.weekday() + 1) % 7


def _match_month(lower: str) -> Optional[int]:
    for i, name in enumerate(MONTHS):
        if name in lower or re.search(rf"\b{MONTH_ABBREVS[i]}\b", lower):
            return i + 1
    return None


def extract_date_range(query: str, now: Optional[datetime] = None) -> Optional[DateRange]:
    """
    Extract a date range from a natural-language query.

    Branches are tried in a fixed priority order and the first one that
    matches wins, so "2026 this week" resolves to the year.
    Returns None when no date context is found.
    """
    lower = query.lower()
    now = now or datetime.now()
    year = now.year
    month = now.month

    year_match = YEAR_PATTERN.search(lower)
    if year_match:
        y = int(year_match.group(1))
        return DateRange(datetime(y, 1, 1), datetime(y, 12, 31, 23, 59, 59), f"{y}")

    if "today" in lower:
        return _single_day(now, "today")

    if "tomorrow" in lower:
        return _single_day(now + timedelta(days=1), "tomorrow")

    if "yesterday" in lower:
        return _single_day(now - timedelta(days=1), "yesterday")

    offset = _days_since_sunday(now)
    if "this week" in lower:
        return _week(now - timedelta(days=offset), "this week")

    if "next week" in lower:
        return _week(now + timedelta(days=7 - offset), "next week")

    if "last week" in lower:
        return _week(now - timedelta(days=offset + 7), "last week")

    if "this month" in lower:
        return _month(year, month, "this month")

    if "next month" in lower:
        return _month(year, month + 1, "next month")

    named = _match_month(lower)
    if named is not None:
        # a month that already passed this year means the next occurrence
        target_year = year + 1 if named < month else year
        return _month(target_year, named, f"{MONTHS[named - 1]} {target_year}")

    if "fall semester" in lower or ("fall" in lower and "fall behind" not in lower):
        return _fall(year)

    if "spring semester" in lower or ("spring" in lower and "spring break" not in lower):
        return _spring(year + 1 if month > 5 else year)

    if "this semester" in lower:
        if 8 <= month <= 12:
            return _fall(year)
        return _spring(year if month < 6 else year + 1)

    if "last semester" in lower:
        if month <= 7:
            return _fall(year - 1)
        return _spring(year)

    next_days = NEXT_DAYS_PATTERN.search(lower)
    if next_days:
        days = int(next_days.group(1))
        if days > MAX_NEXT_DAYS:
            return None
        return DateRange(
            _start_of_day(now),
            _end_of_day(now + timedelta(days=days)),
            f"next {days} days",
        )

    return None


def is_within_range(when: Optional[datetime], date_range: DateRange) -> bool:
    if when is None:
        return False
    return date_range.start <= when <= date_range.end


T = TypeVar("T")


def filter_by_date_range(items: Iterable[T], date_range: Optional[DateRange]) -> List[T]:
    """
    Keep items whose `due_at` falls inside the range.
    Items without a due date are dropped once a range is given.
    """
    items = list(items)
    if date_range is None:
        return items
    return [item for item in items if is_within_range(getattr(item, "due_at", None), date_range)]
