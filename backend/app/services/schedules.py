from __future__ import annotations

from datetime import date, timedelta
import calendar

FREQUENCIES = ("once", "weekly", "biweekly", "monthly", "quarterly", "annual")


def _DaysInMonth(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def AddMonths(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, _DaysInMonth(year, month))
    return date(year, month, day)


def AddYears(value: date, years: int) -> date:
    year = value.year + years
    day = min(value.day, _DaysInMonth(year, value.month))
    return date(year, value.month, day)


def NextOccurrenceDate(value: date, frequency: str) -> date | None:
    """Date of the following occurrence, or None for one-off schedules."""
    if frequency == "weekly":
        return value + timedelta(days=7)
    if frequency == "biweekly":
        return value + timedelta(days=14)
    if frequency == "monthly":
        return AddMonths(value, 1)
    if frequency == "quarterly":
        return AddMonths(value, 3)
    if frequency == "annual":
        return AddYears(value, 1)
    return None
