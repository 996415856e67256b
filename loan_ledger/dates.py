"""Calendar helpers for due-date advancement."""

import calendar
from datetime import date


def advance_by_period(start_date: date, months: int) -> date:
    """
    Add calendar months to a date, handling month-end edge cases

    When the original day does not exist in the target month the result is
    clamped to that month's last day (Jan 31 + 1 month -> Feb 28/29). The
    clamp is not undone by later advances.
    """
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def whole_months_between(start_date: date, end_date: date) -> int:
    """Complete calendar months from start_date to end_date (floored)"""
    months = (end_date.year - start_date.year) * 12 + (end_date.month - start_date.month)
    if end_date.day < start_date.day:
        months -= 1
    return months
