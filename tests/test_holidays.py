from datetime import date, datetime

import pytest

from alarms.errors import CalendarRangeError
from alarms.holidays import HolidayCalendar, lunar_to_solar


def test_fixed_holidays_present_every_year():
    calendar = HolidayCalendar()
    for year in (2000, 2024, 2031):
        days = calendar.holidays(year)
        for month, day in ((1, 1), (2, 28), (4, 4), (4, 5), (5, 1), (9, 28), (10, 10), (10, 25), (12, 25)):
            assert date(year, month, day) in days


def test_lunar_new_year_block_2025():
    calendar = HolidayCalendar()
    # 2025-01-29 is the first day of the lunar year.
    for day in (28, 29, 30, 31):
        assert calendar.is_holiday(date(2025, 1, day))
    assert not calendar.is_holiday(date(2025, 1, 27))
    assert not calendar.is_holiday(date(2025, 2, 1))
    assert calendar.holiday_name(date(2025, 1, 28)) == "Lunar New Year's Eve"
    assert calendar.holiday_name(date(2025, 1, 30)) == "Lunar New Year"


def test_festivals_without_leap_month_before_target():
    calendar = HolidayCalendar()
    assert calendar.holiday_name(date(2025, 5, 31)) == "Dragon Boat Festival"
    assert calendar.holiday_name(date(2025, 10, 6)) == "Mid-Autumn Festival"
    assert calendar.holiday_name(date(2024, 6, 10)) == "Dragon Boat Festival"
    assert calendar.holiday_name(date(2024, 9, 17)) == "Mid-Autumn Festival"


def test_festivals_after_leap_month():
    # 2023 has a leap second month, 2020 a leap fourth month.
    assert lunar_to_solar(2023, 5, 5) == date(2023, 6, 22)
    assert lunar_to_solar(2023, 8, 15) == date(2023, 9, 29)
    assert lunar_to_solar(2020, 5, 5) == date(2020, 6, 25)
    assert lunar_to_solar(2020, 8, 15) == date(2020, 10, 1)


def test_time_of_day_is_ignored():
    calendar = HolidayCalendar()
    assert calendar.is_holiday(datetime(2025, 10, 10, 23, 59, 59))
    assert not calendar.is_holiday(datetime(2025, 10, 11, 0, 0, 1))


def test_holiday_name_empty_for_working_day():
    assert HolidayCalendar().holiday_name(date(2025, 3, 12)) == ""


def test_out_of_range_year_raises_for_holiday_set():
    with pytest.raises(CalendarRangeError):
        HolidayCalendar().holidays(2150)
    with pytest.raises(CalendarRangeError):
        HolidayCalendar().holidays(1850)


def test_out_of_range_year_is_not_a_holiday():
    calendar = HolidayCalendar()
    assert calendar.is_holiday(date(2150, 1, 1)) is False
    assert calendar.holiday_name(date(2150, 10, 10)) == ""


def test_holidays_are_cached_per_year():
    calendar = HolidayCalendar()
    first = calendar.holidays(2025)
    first.clear()
    assert date(2025, 1, 1) in calendar.holidays(2025)
