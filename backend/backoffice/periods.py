# Overview: Calendar period keys and the date ranges they cover.

"""
Period helpers shared by target generation, target achievement and every
dashboard date-range query.

All functions are pure given their arguments; the only clock read is the
``today`` default, which callers may pass explicitly.
"""

from __future__ import annotations

import calendar
import re
from datetime import date

from .statuses import GroupBy, TargetType, TimeRange, parse_enum
from .time_utils import as_date, utctoday
from .validation import ValidationError


PERIOD_FORMATS = {
    TargetType.MONTHLY: (re.compile(r"^\d{4}-(0[1-9]|1[0-2])$"), "YYYY-MM"),
    TargetType.QUARTERLY: (re.compile(r"^\d{4}-Q[1-4]$"), "YYYY-Qn"),
    TargetType.YEARLY: (re.compile(r"^\d{4}$"), "YYYY"),
}


def validate_period_format(period: str, target_type) -> str:
    """
    Check a period key against the format of its target type.

    Returns:
        The period key unchanged

    Raises:
        ValidationError: naming the expected format
    """
    target_type = parse_enum(TargetType, target_type, "target_type")
    pattern, expected = PERIOD_FORMATS[target_type]
    if not isinstance(period, str) or not pattern.fullmatch(period):
        raise ValidationError(
            f"Invalid {target_type.value} period {period!r}: expected format {expected}"
        )
    return period


def _last_day(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def period_date_range(period: str, target_type) -> tuple[date, date]:
    """Inclusive (first day, last day) covered by a period key."""
    target_type = parse_enum(TargetType, target_type, "target_type")
    validate_period_format(period, target_type)

    year = int(period[:4])
    if target_type is TargetType.MONTHLY:
        month = int(period[5:7])
        return date(year, month, 1), _last_day(year, month)
    if target_type is TargetType.QUARTERLY:
        quarter = int(period[-1])
        first_month = (quarter - 1) * 3 + 1
        return date(year, first_month, 1), _last_day(year, quarter * 3)
    return date(year, 1, 1), date(year, 12, 31)


def generate_target_period(target_type, today: date | None = None) -> str:
    """Period key containing ``today`` (UTC date by default)."""
    target_type = parse_enum(TargetType, target_type, "target_type")
    today = today or utctoday()
    if target_type is TargetType.MONTHLY:
        return f"{today.year}-{today.month:02d}"
    if target_type is TargetType.QUARTERLY:
        return f"{today.year}-Q{(today.month - 1) // 3 + 1}"
    return str(today.year)


def period_key_for_date(d: date, group_by) -> str:
    """
    Bucket key for a date.

    Weeks follow ISO-8601: week 1 contains the year's first Thursday, so
    2025-12-29 belongs to 2026-W01.
    """
    group_by = parse_enum(GroupBy, group_by, "group_by")
    d = as_date(d)
    if group_by is GroupBy.DAY:
        return d.isoformat()
    if group_by is GroupBy.WEEK:
        iso_year, iso_week, _ = d.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if group_by is GroupBy.MONTH:
        return f"{d.year}-{d.month:02d}"
    if group_by is GroupBy.QUARTER:
        return f"{d.year}-Q{(d.month - 1) // 3 + 1}"
    return str(d.year)


_TIME_RANGE_TARGET_TYPES = {
    TimeRange.MONTH: TargetType.MONTHLY,
    TimeRange.QUARTER: TargetType.QUARTERLY,
    TimeRange.YEAR: TargetType.YEARLY,
}


def time_range_bounds(time_range, today: date | None = None) -> tuple[date, date]:
    """Current month/quarter/year as an inclusive date range."""
    time_range = parse_enum(TimeRange, time_range, "time_range")
    target_type = _TIME_RANGE_TARGET_TYPES[time_range]
    return period_date_range(generate_target_period(target_type, today), target_type)


def month_keys_between(start: date, end: date) -> list[str]:
    keys = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        keys.append(f"{year}-{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return keys


def days_overdue(due_date, today: date | None = None) -> int:
    """Whole days past due, compared on UTC calendar dates; never negative."""
    if due_date is None:
        return 0
    today = as_date(today) or utctoday()
    return max(0, (today - as_date(due_date)).days)
