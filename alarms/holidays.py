from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Dict, Set

from lunardate import LunarDate

from .errors import CalendarRangeError

logger = logging.getLogger(__name__)

MIN_YEAR = 1900
MAX_YEAR = 2099

FIXED_HOLIDAYS = {
    (1, 1): "New Year's Day",
    (2, 28): "Peace Memorial Day",
    (4, 4): "Children's Day",
    (4, 5): "Tomb-Sweeping Day",
    (5, 1): "Labor Day",
    (9, 28): "Teachers' Day",
    (10, 10): "National Day",
    (10, 25): "Retrocession Day",
    (12, 25): "Constitution Day",
}

# (lunar month, lunar day) -> name; months are the regular, non-leap ones.
LUNAR_FESTIVALS = {
    (5, 5): "Dragon Boat Festival",
    (8, 15): "Mid-Autumn Festival",
}

LUNAR_NEW_YEAR = "Lunar New Year"
LUNAR_NEW_YEAR_EVE = "Lunar New Year's Eve"


def lunar_to_solar(year: int, month: int, day: int) -> date:
    """Convert a day of a regular lunar month to its Gregorian date.

    ``lunardate`` indexes leap months separately (``isLeapMonth=True``), so a
    leap month inserted before ``month`` is already accounted for by its table.
    """
    _check_year(year)
    try:
        return LunarDate(year, month, day).toSolarDate()
    except ValueError as exc:
        raise CalendarRangeError(f"Cannot convert lunar {year}-{month:02d}-{day:02d}: {exc}") from exc


def _check_year(year: int) -> None:
    if year < MIN_YEAR or year > MAX_YEAR:
        raise CalendarRangeError(f"Year {year} outside supported range [{MIN_YEAR}, {MAX_YEAR}]")


class HolidayCalendar:
    """Public holidays: fixed solar dates plus lunisolar festivals."""

    def __init__(self) -> None:
        self._cache: Dict[int, Dict[date, str]] = {}

    def holidays(self, year: int) -> Set[date]:
        """Return every holiday date of ``year``.

        Raises CalendarRangeError when the lunisolar table does not cover ``year``.
        """
        return set(self._named_holidays(year))

    def is_holiday(self, day) -> bool:
        day = _as_date(day)
        try:
            return day in self._named_holidays(day.year)
        except CalendarRangeError as exc:
            logger.warning("Holiday lookup failed, treating %s as a working day: %s", day, exc)
            return False

    def holiday_name(self, day) -> str:
        day = _as_date(day)
        try:
            return self._named_holidays(day.year).get(day, "")
        except CalendarRangeError as exc:
            logger.warning("Holiday name lookup failed for %s: %s", day, exc)
            return ""

    def _named_holidays(self, year: int) -> Dict[date, str]:
        cached = self._cache.get(year)
        if cached is not None:
            return cached
        _check_year(year)

        named: Dict[date, str] = {}
        for (month, day), name in FIXED_HOLIDAYS.items():
            named[date(year, month, day)] = name

        # Lunar holidays win on collision so the name reflects the movable festival.
        new_year = lunar_to_solar(year, 1, 1)
        named[new_year - timedelta(days=1)] = LUNAR_NEW_YEAR_EVE
        for offset in range(3):
            named[new_year + timedelta(days=offset)] = LUNAR_NEW_YEAR
        for (month, day), name in LUNAR_FESTIVALS.items():
            named[lunar_to_solar(year, month, day)] = name

        self._cache[year] = named
        logger.debug("Computed %s holidays for %s", len(named), year)
        return named


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value
