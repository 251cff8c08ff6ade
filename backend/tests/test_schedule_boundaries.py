from datetime import date

from app.services.schedules import AddMonths, AddYears, NextOccurrenceDate


def test_monthly_schedule_clamps_to_month_end():
    assert NextOccurrenceDate(date(2026, 1, 31), "monthly") == date(2026, 2, 28)
    assert NextOccurrenceDate(date(2028, 1, 31), "monthly") == date(2028, 2, 29)


def test_quarterly_schedule_rolls_year():
    assert NextOccurrenceDate(date(2026, 11, 30), "quarterly") == date(2027, 2, 28)


def test_annual_schedule_handles_leap_day():
    assert AddYears(date(2028, 2, 29), 1) == date(2029, 2, 28)
    assert NextOccurrenceDate(date(2026, 6, 1), "annual") == date(2027, 6, 1)


def test_weekly_and_biweekly_schedules():
    assert NextOccurrenceDate(date(2026, 12, 28), "weekly") == date(2027, 1, 4)
    assert NextOccurrenceDate(date(2026, 3, 1), "biweekly") == date(2026, 3, 15)


def test_one_off_schedule_has_no_next_date():
    assert NextOccurrenceDate(date(2026, 3, 1), "once") is None


def test_add_months_handles_negative_offsets():
    assert AddMonths(date(2026, 3, 31), -1) == date(2026, 2, 28)
