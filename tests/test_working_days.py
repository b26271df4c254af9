from __future__ import annotations

from datetime import date

import pytest

from booking_bot.application.utils.working_days import WorkingDayCalendar

from conftest import TZ


def test_holidays_include_easter_relative_days():
    calendar = WorkingDayCalendar(timezone=TZ)
    holidays = calendar.holidays_for_year(2026)

    assert date(2026, 2, 16) in holidays  # Carnival Monday
    assert date(2026, 2, 17) in holidays  # Carnival Tuesday
    assert date(2026, 4, 3) in holidays  # Good Friday
    assert date(2026, 6, 4) in holidays  # Corpus Christi
    assert date(2026, 8, 6) in holidays
    assert date(2026, 4, 5) not in holidays


def test_next_working_days_skips_rest_day_and_holidays():
    calendar = WorkingDayCalendar(timezone=TZ, today=lambda: date(2026, 2, 14))

    assert calendar.next_working_days(3) == [date(2026, 2, 14), date(2026, 2, 18), date(2026, 2, 19)]


def test_next_working_days_is_deterministic_for_fixed_today():
    calendar = WorkingDayCalendar(timezone=TZ, rest_weekdays=(5, 6), today=lambda: date(2026, 4, 30))

    first = calendar.next_working_days(5)
    second = calendar.next_working_days(5)

    assert first == second
    assert date(2026, 5, 1) not in first
    assert all(d.weekday() < 5 for d in first)


def test_extra_holidays_and_invalid_rest_days():
    calendar = WorkingDayCalendar(timezone=TZ, extra_holidays=[date(2026, 3, 3)])
    assert not calendar.is_working_day(date(2026, 3, 3))
    assert calendar.is_working_day(date(2026, 3, 4))
    assert calendar.next_working_days(0) == []

    with pytest.raises(ValueError):
        WorkingDayCalendar(timezone=TZ, rest_weekdays=range(7)).next_working_days(1)
