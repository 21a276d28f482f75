"""
Planning Calendar Module for monthly projections and week-block timing.

This module handles:
- Canonical month keys ("YYYY_MM") and days-in-month arithmetic
- Planning horizon date ranges
- Fixed 7-day week blocks inside a month (S1..S5)
- Lead-time aware week blocks (order date, arrival date, eligibility)

All dates are plain calendar dates (``datetime.date``), which carry no
timezone; the only timestamps produced (``date_range``) are UTC-aware.

Usage Examples:
    from datetime import date
    from purchase_planner.domain.calendar import (
        days_in_month, parse_month_key, remaining_week_blocks, week_blocks_with_lead_time,
    )

    days_in_month(2024, 2)                      # 29
    parse_month_key("2026_03")                  # YearMonth(year=2026, month=3)

    # Remaining blocks of February 2026 seen from the 13th
    blocks = remaining_week_blocks(2026, 2, 13)
    # S2 (13-14), S3 (15-21), S4 (22-28)

    # Same blocks, orders placed with a 10-day lead time
    blocks = week_blocks_with_lead_time(2026, 2, 13, 10)
    # S2 arrives 23/02 (eligible), S3 arrives 25/02 (eligible), S4 arrives 04/03 (not eligible)
"""
import calendar
import math
import re
from datetime import date as Date, datetime, timedelta, timezone
from typing import List, NamedTuple, Optional, Union

from purchase_planner.domain.models import WeekBlock
from purchase_planner.errors import MonthKeyError


_MONTH_KEY_RE = re.compile(r"^(\d{4})_(\d{2})$")

SECONDS_PER_DAY = 24 * 60 * 60

# Fixed blocks (label, first day, last day); S5 is added for months > 28 days
WEEK_BLOCKS = (
    ("S1", 1, 7),
    ("S2", 8, 14),
    ("S3", 15, 21),
    ("S4", 22, 28),
)

MONTH_ABBREVIATIONS = ("Jan", "Fev", "Mar", "Abr", "Mai", "Jun", "Jul", "Ago", "Set", "Out", "Nov", "Dez")


class YearMonth(NamedTuple):
    """Parsed month key."""
    year: int
    month: int


class DateRange(NamedTuple):
    """Planning horizon bounds (UTC)."""
    min: datetime
    max: datetime


def days_in_month(year: int, month: int) -> int:
    """
    Number of days of a month in the proleptic Gregorian calendar.

    Months outside 1..12 roll over into the adjacent years, so month=0 is
    December of the previous year and month=13 is January of the next one.

    Args:
        year: Calendar year
        month: Month number (1 = January)

    Returns:
        Day count (28-31)
    """
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return calendar.monthrange(year, month)[1]


def parse_month_key(key: str) -> YearMonth:
    """
    Parse a canonical "YYYY_MM" month key.

    Raises:
        MonthKeyError: If key is not exactly 4-digit year, underscore, 2-digit month (01-12)
    """
    match = _MONTH_KEY_RE.match(key) if isinstance(key, str) else None
    if match is None:
        raise MonthKeyError(f"Invalid month key {key!r}: expected 'YYYY_MM'")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise MonthKeyError(f"Invalid month key {key!r}: month must be 01-12")
    return YearMonth(year, month)


def format_month_key(year: int, month: int) -> str:
    """Build the "YYYY_MM" key of a month."""
    return f"{year:04d}_{month:02d}"


def month_key_for(day: Date) -> str:
    """Month key containing a date."""
    return format_month_key(day.year, day.month)


def next_month_key(key: str) -> str:
    """Month key following ``key``."""
    year, month = parse_month_key(key)
    if month == 12:
        return format_month_key(year + 1, 1)
    return format_month_key(year, month + 1)


def month_keys_from(start: Date, count: int) -> List[str]:
    """
    Consecutive month keys of a planning horizon.

    Args:
        start: Any date inside the first month
        count: Number of months

    Returns:
        List of "YYYY_MM" keys, starting with start's month
    """
    keys = []
    key = month_key_for(start)
    for _ in range(count):
        keys.append(key)
        key = next_month_key(key)
    return keys


def add_days(day: Date, days: int) -> Date:
    """Calendar date ``days`` after ``day``."""
    return day + timedelta(days=days)


def _utc_today() -> Date:
    return datetime.now(timezone.utc).date()


def _as_utc_midnight(value: Union[Date, datetime]) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        value = value.date()
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def date_range(month_keys: List[str], today: Optional[Date] = None) -> DateRange:
    """
    First and last instant of the planning horizon.

    Args:
        month_keys: Ordered horizon
        today: Date used when the horizon is empty (default: current UTC date)

    Returns:
        DateRange(min=first day 00:00:00, max=last day 23:59:59), both UTC.
        An empty horizon returns today (midnight) for both bounds.
    """
    if not month_keys:
        midnight = _as_utc_midnight(today if today is not None else _utc_today())
        return DateRange(midnight, midnight)

    first = parse_month_key(month_keys[0])
    last = parse_month_key(month_keys[-1])
    low = datetime(first.year, first.month, 1, tzinfo=timezone.utc)
    high = datetime(
        last.year, last.month, days_in_month(last.year, last.month), 23, 59, 59, tzinfo=timezone.utc
    )
    return DateRange(low, high)


def days_between(start: Union[Date, datetime], end: Union[Date, datetime]) -> int:
    """
    Whole days from start to end (ceiling), both normalized to UTC midnight.

    Negative when end precedes start.
    """
    delta = _as_utc_midnight(end) - _as_utc_midnight(start)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def remaining_week_blocks(year: int, month: int, reference_day: int) -> List[WeekBlock]:
    """
    Week blocks covering [reference_day, last day of month].

    Blocks entirely before reference_day are dropped; the block containing
    it starts at reference_day (partial week). S5 only exists in months
    longer than 28 days.

    Args:
        year: Calendar year
        month: Month number
        reference_day: First day still open (1 for a whole month)

    Returns:
        Ordered list of WeekBlock
    """
    total_days = days_in_month(year, month)

    blocks = list(WEEK_BLOCKS)
    if total_days > 28:
        blocks.append(("S5", 29, total_days))

    weeks = []
    for label, start, end in blocks:
        if end < reference_day:
            continue

        effective_start = max(start, reference_day)
        effective_end = min(end, total_days)
        days = effective_end - effective_start + 1

        if days > 0:
            weeks.append(WeekBlock(label=label, start=effective_start, end=effective_end, days=days))

    return weeks


def week_blocks_with_lead_time(
    year: int,
    month: int,
    reference_day: int,
    lead_time_days: int
) -> List[WeekBlock]:
    """
    Remaining week blocks with order/arrival timing.

    The order date of each block is its (possibly clipped) first day: the
    reference day for the current block, the natural block start otherwise.
    A block is eligible when its arrival (order date + lead time) falls on
    or before the last day of the same month.

    Args:
        year: Calendar year
        month: Month number
        reference_day: First day still open
        lead_time_days: Supplier lead time

    Returns:
        Ordered list of WeekBlock with order_date, arrival_date, eligible, arrival_month
    """
    last_day = Date(year, month, days_in_month(year, month))

    weeks = []
    for block in remaining_week_blocks(year, month, reference_day):
        order_date = Date(year, month, block.start)
        arrival_date = add_days(order_date, lead_time_days)
        weeks.append(WeekBlock(
            label=block.label,
            start=block.start,
            end=block.end,
            days=block.days,
            order_date=order_date,
            arrival_date=arrival_date,
            eligible=arrival_date <= last_day,
            arrival_month=month_key_for(arrival_date),
        ))
    return weeks


# ============ Display helpers ============

def format_month_label(key: str) -> str:
    """Short month label: "2026_03" becomes "Mar/26"."""
    year, month = parse_month_key(key)
    return f"{MONTH_ABBREVIATIONS[month - 1]}/{year % 100:02d}"


def format_date_br(day: Date) -> str:
    """Date as dd/mm/yyyy."""
    return day.strftime("%d/%m/%Y")
