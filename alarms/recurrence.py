from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from .holidays import HolidayCalendar
from .storage import AlarmRecord

_default_calendar: Optional[HolidayCalendar] = None


def weekday_number(day: date) -> int:
    """Weekday with Sunday as 0 and Saturday as 6."""
    return day.isoweekday() % 7


def should_ring_today(alarm: AlarmRecord, today: date, calendar: Optional[HolidayCalendar] = None) -> bool:
    if isinstance(today, datetime):
        today = today.date()
    if alarm.exclude_holidays:
        calendar = calendar or _shared_calendar()
        if calendar.is_holiday(today):
            return False
    if not alarm.days_of_week:
        return True
    return weekday_number(today) in alarm.days_of_week


def _shared_calendar() -> HolidayCalendar:
    global _default_calendar
    if _default_calendar is None:
        _default_calendar = HolidayCalendar()
    return _default_calendar
