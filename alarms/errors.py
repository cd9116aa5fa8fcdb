from __future__ import annotations


class AlarmClockError(Exception):
    """Base class for recoverable alarm clock failures."""


class ConfigLoadError(AlarmClockError):
    """Settings file is unreadable or malformed."""


class ConfigSaveError(AlarmClockError):
    """Settings file could not be written."""


class CalendarRangeError(AlarmClockError):
    """Year is outside the range covered by the lunisolar table."""


class PresenceQueryError(AlarmClockError):
    """The OS could not report the time of the last user input."""
