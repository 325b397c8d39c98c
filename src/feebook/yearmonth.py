"""Calendar arithmetic on (year, month) pairs.

Everything here is pure: callers pass ``now`` in explicitly so invoice
generation, overdue checks and reporting stay deterministic.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime

from .errors import InvalidInputError

# Invoices fall due at the end of this day of their month
DUE_DAY = 15

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True, order=True)
class YearMonth:
    year: int
    month: int

    @property
    def key(self) -> str:
        return month_key(self.year, self.month)

    def __str__(self) -> str:
        return self.key


def compare(a: YearMonth, b: YearMonth) -> int:
    """Lexicographic comparison: negative, zero or positive."""
    if a.year != b.year:
        return a.year - b.year
    return a.month - b.month


def successor(ym: YearMonth) -> YearMonth:
    if ym.month == 12:
        return YearMonth(ym.year + 1, 1)
    return YearMonth(ym.year, ym.month + 1)


def add_months(ym: YearMonth, months: int) -> YearMonth:
    """Shift by a signed number of months."""
    index = ym.year * 12 + (ym.month - 1) + months
    return YearMonth(index // 12, index % 12 + 1)


def from_date(value: date) -> YearMonth:
    return YearMonth(value.year, value.month)


def month_start(ym: YearMonth) -> datetime:
    return datetime(ym.year, ym.month, 1)


def month_end(ym: YearMonth) -> datetime:
    """Last instant of the month (23:59:59.999999 on its final day)."""
    last_day = calendar.monthrange(ym.year, ym.month)[1]
    return datetime(ym.year, ym.month, last_day, 23, 59, 59, 999999)


def overlaps(year: int, month: int, start: datetime, end: datetime | None) -> bool:
    """True if the interval [start, end) touches any part of the calendar month.

    ``end=None`` is an open-ended interval reaching into the unbounded future.
    """
    ym = YearMonth(year, month)
    if start > month_end(ym):
        return False
    return end is None or end >= month_start(ym)


def is_overdue(year: int, month: int, now: datetime) -> bool:
    """True once ``now`` is past the end of the due day of that month."""
    due = datetime(year, month, DUE_DAY, 23, 59, 59, 999999)
    return now > due


def month_key(year: int, month: int) -> str:
    return f"{year}-{month:02d}"


def month_label(year: int, month: int) -> str:
    """Short human label, e.g. "Mar 2026"."""
    return date(year, month, 1).strftime("%b %Y")


def parse_month(text: str) -> YearMonth:
    """Parse a ``YYYY-MM`` string."""
    match = _MONTH_RE.match((text or "").strip())
    if not match:
        raise InvalidInputError(f"Invalid month {text!r}. Use YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidInputError(f"Invalid month {text!r}. Month must be 01-12")
    return YearMonth(year, month)
