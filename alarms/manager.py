from __future__ import annotations

import logging
from collections import deque
from dataclasses import replace
from datetime import date, datetime
from enum import Enum
from threading import Event, Lock, Thread
from typing import Callable, Deque, Dict, Iterable, List, Optional, Tuple

from time_utils import now_in_tz

from .holidays import HolidayCalendar
from .presence import PresenceOracle, query_presence
from .recurrence import should_ring_today
from .storage import (
    AlarmRecord,
    ConfigStore,
    GlobalSettings,
    default_alarm_name,
    new_alarm_id,
    normalize_days,
)

logger = logging.getLogger(__name__)

# Alarm time matches when |now - alarm| is strictly below this many seconds.
MATCH_TOLERANCE_SECONDS = 1.0


class AlarmEvent(Enum):
    TRIGGERED = "alarm_triggered"
    STOPPED = "alarm_stopped"
    CHANGED = "alarms_changed"


class AlarmRuntimeState:
    def __init__(self) -> None:
        self.ringing_alarm: Optional[AlarmRecord] = None
        # (alarm id, match date) of alarms that matched while another one was
        # ringing, oldest first. Entries expire when the date rolls over.
        self.pending: Deque[Tuple[str, date]] = deque()
        # alarm id -> (date, hour, minute) of the last trigger
        self.last_fired: Dict[str, Tuple[date, int, int]] = {}


class AlarmManager:
    """Once-per-second alarm scheduler with a single ringing slot.

    ``tick`` does all state transitions. Mutations persist the whole alarm
    list through the config store and fire ``alarms_changed``. Listeners are
    invoked synchronously, after the internal lock is released.
    """

    def __init__(
        self,
        store: ConfigStore,
        presence: Optional[PresenceOracle] = None,
        calendar: Optional[HolidayCalendar] = None,
        check_interval: float = 1.0,
        on_alarm_triggered: Optional[Callable[[AlarmRecord], None]] = None,
        on_alarm_stopped: Optional[Callable[[AlarmRecord], None]] = None,
        on_alarms_changed: Optional[Callable[[], None]] = None,
        timezone=None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.presence = presence
        self.calendar = calendar or HolidayCalendar()
        self.check_interval = max(0.2, check_interval)
        self.tzinfo = timezone
        self._clock = clock

        self.settings = GlobalSettings()
        self._alarms: List[AlarmRecord] = []
        self._lock = Lock()
        # Serializes writes; _save_seq is guarded by _lock, _saved_seq by _save_lock.
        self._save_lock = Lock()
        self._save_seq = 0
        self._saved_seq = 0
        self._stop_event = Event()
        self._thread: Optional[Thread] = None
        self._runtime = AlarmRuntimeState()
        self._listeners: Dict[AlarmEvent, List[Callable]] = {event: [] for event in AlarmEvent}

        if on_alarm_triggered:
            self.subscribe(AlarmEvent.TRIGGERED, on_alarm_triggered)
        if on_alarm_stopped:
            self.subscribe(AlarmEvent.STOPPED, on_alarm_stopped)
        if on_alarms_changed:
            self.subscribe(AlarmEvent.CHANGED, on_alarms_changed)

    # -- lifecycle -----------------------------------------------------

    def load(self) -> None:
        settings, alarms = self.store.load()
        with self._lock:
            self.settings = settings
            self._alarms = list(alarms)
            self._runtime = AlarmRuntimeState()
        logger.info("Loaded %s alarms from %s", len(alarms), self.store.path)

    def start(self) -> None:
        self.load()
        self._stop_event.clear()
        self._thread = Thread(target=self._loop, name="alarm-scheduler", daemon=True)
        self._thread.start()

    def shutdown(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2)
        self._thread = None
        self.stop_alarm()

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.error("Alarm tick failed", exc_info=True)
            self._stop_event.wait(self.check_interval)

    # -- listeners -----------------------------------------------------

    def subscribe(self, event: AlarmEvent, callback: Callable) -> None:
        self._listeners[event].append(callback)

    def unsubscribe(self, event: AlarmEvent, callback: Callable) -> None:
        try:
            self._listeners[event].remove(callback)
        except ValueError:
            logger.debug("Callback %r was not subscribed to %s", callback, event.value)

    def _emit(self, event: AlarmEvent, *args) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(*args)
            except Exception:  # pragma: no cover - callback safety
                logger.error("%s callback failed", event.value, exc_info=True)

    def _dispatch(self, events: Iterable[Tuple[AlarmEvent, tuple]]) -> None:
        for event, args in events:
            self._emit(event, *args)

    # -- queries -------------------------------------------------------

    def now(self) -> datetime:
        if self._clock:
            return self._clock()
        return now_in_tz(self.tzinfo)

    def list_alarms(self) -> List[AlarmRecord]:
        with self._lock:
            return [a.snapshot() for a in self._alarms]

    def get_alarm(self, alarm_id: str) -> Optional[AlarmRecord]:
        with self._lock:
            alarm = self._find(alarm_id)
            return alarm.snapshot() if alarm else None

    @property
    def ringing_alarm(self) -> Optional[AlarmRecord]:
        with self._lock:
            current = self._runtime.ringing_alarm
            return current.snapshot() if current else None

    @property
    def is_ringing(self) -> bool:
        with self._lock:
            return self._runtime.ringing_alarm is not None

    @property
    def pending_alarm_ids(self) -> List[str]:
        with self._lock:
            return [alarm_id for alarm_id, _ in self._runtime.pending]

    def _find(self, alarm_id: str) -> Optional[AlarmRecord]:
        for alarm in self._alarms:
            if alarm.id == alarm_id:
                return alarm
        return None

    # -- mutations -----------------------------------------------------

    def add_alarm(
        self,
        hour: int,
        minute: int,
        name: str = "",
        custom_ringing_seconds: Optional[int] = None,
        max_ringing_minutes: Optional[int] = None,
        music_file_path: str = "",
        days_of_week: Optional[Iterable[int]] = None,
        exclude_holidays: bool = False,
        volume: int = 50,
    ) -> AlarmRecord:
        with self._lock:
            if custom_ringing_seconds is None:
                custom_ringing_seconds = self.settings.default_ringing_duration_seconds
            if max_ringing_minutes is None:
                max_ringing_minutes = self.settings.max_ringing_duration_minutes
            alarm = AlarmRecord(
                id=new_alarm_id(),
                hour=hour,
                minute=minute,
                name=name or default_alarm_name(hour, minute),
                enabled=True,
                custom_ringing_seconds=custom_ringing_seconds,
                max_ringing_minutes=max_ringing_minutes,
                music_file_path=music_file_path or "",
                days_of_week=normalize_days(days_of_week),
                exclude_holidays=exclude_holidays,
                volume=volume,
            )
            self._alarms.append(alarm)
            to_save = self._save_snapshot()
            snapshot = alarm.snapshot()
        self._flush(to_save)
        logger.info("Alarm added at %s (name=%s, id=%s)", alarm.time_label, alarm.name, alarm.id)
        self._emit(AlarmEvent.CHANGED)
        return snapshot

    def update_alarm(
        self,
        alarm_id: str,
        hour: int,
        minute: int,
        name: str,
        enabled: bool,
        custom_ringing_seconds: int,
        max_ringing_minutes: int,
        music_file_path: str = "",
        days_of_week: Optional[Iterable[int]] = None,
        exclude_holidays: bool = False,
        volume: Optional[int] = None,
    ) -> Optional[AlarmRecord]:
        # Validate through the dataclass before touching the live record.
        with self._lock:
            alarm = self._find(alarm_id)
            if alarm is None:
                logger.debug("update_alarm: unknown id %s", alarm_id)
                return None
            candidate = AlarmRecord(
                id=alarm.id,
                hour=hour,
                minute=minute,
                name=name,
                enabled=enabled,
                custom_ringing_seconds=custom_ringing_seconds,
                max_ringing_minutes=max_ringing_minutes,
                music_file_path=music_file_path or "",
                days_of_week=normalize_days(days_of_week),
                exclude_holidays=exclude_holidays,
                volume=alarm.volume if volume is None else volume,
            )
            alarm.hour = candidate.hour
            alarm.minute = candidate.minute
            alarm.name = candidate.name
            alarm.enabled = candidate.enabled
            alarm.custom_ringing_seconds = candidate.custom_ringing_seconds
            alarm.max_ringing_minutes = candidate.max_ringing_minutes
            alarm.music_file_path = candidate.music_file_path
            alarm.days_of_week = candidate.days_of_week
            alarm.exclude_holidays = candidate.exclude_holidays
            alarm.volume = candidate.volume
            events = [] if alarm.enabled else self._silence(alarm)
            to_save = self._save_snapshot()
            snapshot = alarm.snapshot()
        self._flush(to_save)
        logger.info("Alarm %s updated (%s, enabled=%s)", alarm_id, snapshot.time_label, snapshot.enabled)
        self._dispatch(events)
        self._emit(AlarmEvent.CHANGED)
        return snapshot

    def delete_alarm(self, alarm_id: str) -> Optional[AlarmRecord]:
        with self._lock:
            alarm = self._find(alarm_id)
            if alarm is None:
                logger.debug("delete_alarm: unknown id %s", alarm_id)
                return None
            events = self._silence(alarm)
            self._alarms = [a for a in self._alarms if a.id != alarm_id]
            self._runtime.last_fired.pop(alarm_id, None)
            to_save = self._save_snapshot()
        self._flush(to_save)
        logger.info("Alarm %s deleted", alarm_id)
        self._dispatch(events)
        self._emit(AlarmEvent.CHANGED)
        return alarm

    def toggle_alarm(self, alarm_id: str) -> Optional[AlarmRecord]:
        with self._lock:
            alarm = self._find(alarm_id)
            if alarm is None:
                logger.debug("toggle_alarm: unknown id %s", alarm_id)
                return None
            alarm.enabled = not alarm.enabled
            events = [] if alarm.enabled else self._silence(alarm)
            to_save = self._save_snapshot()
            snapshot = alarm.snapshot()
        self._flush(to_save)
        logger.info("Alarm %s %s", alarm_id, "enabled" if snapshot.enabled else "disabled")
        self._dispatch(events)
        self._emit(AlarmEvent.CHANGED)
        return snapshot

    def update_settings(
        self,
        default_ringing_seconds: Optional[int] = None,
        max_ringing_minutes: Optional[int] = None,
        idle_threshold_seconds: Optional[int] = None,
        music_folder_path: Optional[str] = None,
    ) -> GlobalSettings:
        for value in (default_ringing_seconds, max_ringing_minutes, idle_threshold_seconds):
            if value is not None and value < 0:
                raise ValueError("Settings durations must be non-negative")
        with self._lock:
            if default_ringing_seconds is not None:
                self.settings.default_ringing_duration_seconds = default_ringing_seconds
            if max_ringing_minutes is not None:
                self.settings.max_ringing_duration_minutes = max_ringing_minutes
            if idle_threshold_seconds is not None:
                self.settings.idle_threshold_seconds = idle_threshold_seconds
            if music_folder_path is not None:
                self.settings.music_folder_path = music_folder_path
            to_save = self._save_snapshot()
            result = replace(self.settings)
        self._flush(to_save)
        logger.info("Settings updated: %s", result)
        return result

    def _save_snapshot(self) -> Tuple[int, GlobalSettings, List[AlarmRecord]]:
        """Copy what must be written. Caller holds the lock."""
        self._save_seq += 1
        return self._save_seq, replace(self.settings), [a.snapshot() for a in self._alarms]

    def _flush(self, to_save: Tuple[int, GlobalSettings, List[AlarmRecord]]) -> None:
        # Runs outside the scheduler lock so a slow disk never delays tick().
        seq, settings, alarms = to_save
        with self._save_lock:
            if seq <= self._saved_seq:
                # A later snapshot already reached the disk.
                return
            self.store.save(settings, alarms)
            self._saved_seq = seq

    def _silence(self, alarm: AlarmRecord) -> List[Tuple[AlarmEvent, tuple]]:
        """Drop ``alarm`` from the queue and the ringing slot. Caller holds the lock."""
        self._runtime.pending = deque(entry for entry in self._runtime.pending if entry[0] != alarm.id)
        if self._runtime.ringing_alarm is alarm:
            return self._stop_locked()
        return []

    # -- ringing -------------------------------------------------------

    def stop_alarm(self) -> Optional[AlarmRecord]:
        """Stop the ringing alarm, if any. Safe to call when nothing rings."""
        with self._lock:
            current = self._runtime.ringing_alarm
            events = self._stop_locked()
        self._dispatch(events)
        return current.snapshot() if current else None

    def _stop_locked(self) -> List[Tuple[AlarmEvent, tuple]]:
        current = self._runtime.ringing_alarm
        if current is None:
            return []
        current.is_ringing = False
        current.ringing_start_time = None
        self._runtime.ringing_alarm = None
        logger.info("Alarm %s stopped (name=%s)", current.id, current.name)
        return [(AlarmEvent.STOPPED, (current.snapshot(),))]

    def tick(self, now: Optional[datetime] = None) -> None:
        """Run one scheduling step: trigger matches, then apply the auto-stop policy."""
        now = now or self.now()
        with self._lock:
            self._expire_pending(now.date())
            events = self._collect_matches(now)
            events.extend(self._check_ringing(now))
            if self._runtime.ringing_alarm is None:
                events.extend(self._trigger_next_pending(now))
        self._dispatch(events)

    def _collect_matches(self, now: datetime) -> List[Tuple[AlarmEvent, tuple]]:
        events: List[Tuple[AlarmEvent, tuple]] = []
        today = now.date()
        seconds_now = now.hour * 3600 + now.minute * 60 + now.second + now.microsecond / 1_000_000
        for alarm in self._alarms:
            if not alarm.enabled or alarm.is_ringing:
                continue
            if abs(seconds_now - alarm.seconds_of_day) >= MATCH_TOLERANCE_SECONDS:
                continue
            fired_key = (today, alarm.hour, alarm.minute)
            if self._runtime.last_fired.get(alarm.id) == fired_key:
                continue
            if any(alarm_id == alarm.id for alarm_id, _ in self._runtime.pending):
                continue
            if not should_ring_today(alarm, today, self.calendar):
                continue
            self._runtime.last_fired[alarm.id] = fired_key
            if self._runtime.ringing_alarm is None:
                events.extend(self._trigger_locked(alarm, now))
            else:
                self._runtime.pending.append((alarm.id, today))
                logger.info(
                    "Alarm %s matched while %s is ringing, queued",
                    alarm.id,
                    self._runtime.ringing_alarm.id,
                )
        return events

    def _expire_pending(self, today: date) -> None:
        kept = deque()
        for alarm_id, matched_on in self._runtime.pending:
            if matched_on == today:
                kept.append((alarm_id, matched_on))
            else:
                logger.info("Dropping queued alarm %s from %s, its day has passed", alarm_id, matched_on)
        self._runtime.pending = kept

    def _trigger_next_pending(self, now: datetime) -> List[Tuple[AlarmEvent, tuple]]:
        while self._runtime.pending:
            alarm_id, _ = self._runtime.pending.popleft()
            alarm = self._find(alarm_id)
            if alarm is not None and alarm.enabled:
                return self._trigger_locked(alarm, now)
        return []

    def _trigger_locked(self, alarm: AlarmRecord, now: datetime) -> List[Tuple[AlarmEvent, tuple]]:
        alarm.is_ringing = True
        alarm.ringing_start_time = now
        self._runtime.ringing_alarm = alarm
        logger.info("Alarm triggered at %s (name=%s, id=%s)", alarm.time_label, alarm.name, alarm.id)
        return [(AlarmEvent.TRIGGERED, (alarm.snapshot(),))]

    def _check_ringing(self, now: datetime) -> List[Tuple[AlarmEvent, tuple]]:
        current = self._runtime.ringing_alarm
        if current is None or current.ringing_start_time is None:
            return []
        elapsed = (now - current.ringing_start_time).total_seconds()
        user_active = query_presence(self.presence, self.settings.idle_threshold_seconds)
        if user_active and elapsed >= current.custom_ringing_seconds:
            logger.info("User active, auto-stopping %s after %.0fs", current.id, elapsed)
            return self._stop_locked()
        if not user_active and current.max_ringing_minutes > 0 and elapsed >= current.max_ringing_minutes * 60:
            logger.info("User idle, auto-stopping %s after %.0fs", current.id, elapsed)
            return self._stop_locked()
        # Idle with max_ringing_minutes == 0 rings until stop_alarm().
        return []
