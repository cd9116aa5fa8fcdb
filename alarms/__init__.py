"""Alarm scheduling, ringing and persistence for the desktop alarm clock."""

from .errors import AlarmClockError, CalendarRangeError, ConfigLoadError, ConfigSaveError, PresenceQueryError
from .holidays import HolidayCalendar
from .manager import AlarmEvent, AlarmManager, AlarmRuntimeState
from .recurrence import should_ring_today
from .storage import AlarmRecord, ConfigStore, GlobalSettings
