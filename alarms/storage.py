from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

from .errors import ConfigLoadError, ConfigSaveError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "alarm_config.json"
APP_DIR_NAME = "SmartAlarmClock"

DEFAULT_RINGING_SECONDS = 5
DEFAULT_MAX_RINGING_MINUTES = 10
DEFAULT_IDLE_THRESHOLD_SECONDS = 30
DEFAULT_VOLUME = 50


def new_alarm_id() -> str:
    return str(uuid.uuid4())


def default_alarm_name(hour: int, minute: int) -> str:
    return f"Alarm {hour:02d}:{minute:02d}"


def normalize_days(days: Optional[Iterable[int]]) -> Set[int]:
    """Keep only weekday numbers 0 (Sunday) .. 6 (Saturday)."""
    result: Set[int] = set()
    for raw in days or ():
        try:
            value = int(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric weekday %r", raw)
            continue
        if 0 <= value <= 6:
            result.add(value)
        else:
            logger.warning("Ignoring out-of-range weekday %s", value)
    return result


def clamp_volume(value: int) -> int:
    return max(0, min(100, int(value)))


@dataclass
class AlarmRecord:
    id: str
    hour: int
    minute: int
    name: str = ""
    enabled: bool = True
    custom_ringing_seconds: int = DEFAULT_RINGING_SECONDS
    max_ringing_minutes: int = DEFAULT_MAX_RINGING_MINUTES
    music_file_path: str = ""
    days_of_week: Set[int] = field(default_factory=set)
    exclude_holidays: bool = False
    volume: int = DEFAULT_VOLUME
    # Runtime-only, never written to disk.
    is_ringing: bool = field(default=False, compare=False)
    ringing_start_time: Optional[datetime] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not 0 <= self.hour <= 23 or not 0 <= self.minute <= 59:
            raise ValueError(f"Invalid alarm time {self.hour}:{self.minute}")
        if self.custom_ringing_seconds < 0 or self.max_ringing_minutes < 0:
            raise ValueError("Ringing durations must be non-negative")
        self.days_of_week = normalize_days(self.days_of_week)
        self.volume = clamp_volume(self.volume)

    @property
    def time_label(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"

    @property
    def seconds_of_day(self) -> int:
        return self.hour * 3600 + self.minute * 60

    def snapshot(self) -> "AlarmRecord":
        return replace(self, days_of_week=set(self.days_of_week))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "hour": self.hour,
            "minute": self.minute,
            "name": self.name,
            "isEnabled": self.enabled,
            "customRingingDurationSeconds": self.custom_ringing_seconds,
            "maxRingingDurationMinutes": self.max_ringing_minutes,
            "musicFilePath": self.music_file_path,
            "daysOfWeek": sorted(self.days_of_week),
            "excludeHolidays": self.exclude_holidays,
            "volume": self.volume,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AlarmRecord":
        if "hour" not in data or "minute" not in data:
            raise ValueError("Alarm payload missing hour/minute fields")
        return cls(
            id=str(data.get("id") or new_alarm_id()),
            hour=int(data["hour"]),
            minute=int(data["minute"]),
            name=str(data.get("name") or ""),
            enabled=bool(data.get("isEnabled", True)),
            custom_ringing_seconds=int(data.get("customRingingDurationSeconds", DEFAULT_RINGING_SECONDS)),
            max_ringing_minutes=int(data.get("maxRingingDurationMinutes", DEFAULT_MAX_RINGING_MINUTES)),
            music_file_path=str(data.get("musicFilePath") or ""),
            days_of_week=set(data.get("daysOfWeek") or []),
            exclude_holidays=bool(data.get("excludeHolidays", False)),
            volume=int(data.get("volume", DEFAULT_VOLUME)),
        )


@dataclass
class GlobalSettings:
    default_ringing_duration_seconds: int = DEFAULT_RINGING_SECONDS
    max_ringing_duration_minutes: int = DEFAULT_MAX_RINGING_MINUTES
    idle_threshold_seconds: int = DEFAULT_IDLE_THRESHOLD_SECONDS
    music_folder_path: str = ""

    def to_dict(self) -> dict:
        return {
            "defaultRingingDurationSeconds": self.default_ringing_duration_seconds,
            "maxRingingDurationMinutes": self.max_ringing_duration_minutes,
            "idleThresholdSeconds": self.idle_threshold_seconds,
            "musicFolderPath": self.music_folder_path,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GlobalSettings":
        return cls(
            default_ringing_duration_seconds=int(
                data.get("defaultRingingDurationSeconds", DEFAULT_RINGING_SECONDS)
            ),
            max_ringing_duration_minutes=int(data.get("maxRingingDurationMinutes", DEFAULT_MAX_RINGING_MINUTES)),
            idle_threshold_seconds=int(data.get("idleThresholdSeconds", DEFAULT_IDLE_THRESHOLD_SECONDS)),
            music_folder_path=str(data.get("musicFolderPath") or ""),
        )


def default_app_dir() -> Path:
    appdata = os.getenv("APPDATA")
    if appdata:
        return Path(appdata) / APP_DIR_NAME
    return Path.home() / ".smart_alarm_clock"


def default_config_path() -> Path:
    return default_app_dir() / CONFIG_FILE_NAME


def default_music_folder() -> Path:
    return default_app_dir() / "Music"


def default_configuration() -> Tuple[GlobalSettings, List[AlarmRecord]]:
    alarms = [
        AlarmRecord(id=new_alarm_id(), hour=23, minute=0, name="Evening reminder"),
        AlarmRecord(id=new_alarm_id(), hour=0, minute=0, name="Midnight reminder"),
    ]
    return GlobalSettings(), alarms


class ConfigStore:
    """JSON settings file holding the alarm list and global settings."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else default_config_path()

    def load(self) -> Tuple[GlobalSettings, List[AlarmRecord]]:
        """Read the settings file, falling back to defaults when missing or malformed."""
        if not self.path.exists():
            logger.info("No settings file at %s, using defaults", self.path)
            return default_configuration()
        try:
            return self._read()
        except ConfigLoadError as exc:
            logger.error("Failed to load settings from %s: %s", self.path, exc)
            return default_configuration()

    def save(self, settings: GlobalSettings, alarms: Iterable[AlarmRecord]) -> bool:
        try:
            self._write(settings, alarms)
        except ConfigSaveError as exc:
            logger.error("Failed to save settings to %s: %s", self.path, exc)
            return False
        return True

    def _read(self) -> Tuple[GlobalSettings, List[AlarmRecord]]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError) as exc:
            raise ConfigLoadError(str(exc)) from exc
        if not isinstance(payload, dict):
            raise ConfigLoadError("settings root must be a JSON object")

        try:
            settings = GlobalSettings.from_dict(payload)
        except (TypeError, ValueError) as exc:
            raise ConfigLoadError(f"invalid global settings: {exc}") from exc

        raw_alarms = payload.get("alarms") or []
        if not isinstance(raw_alarms, list):
            raise ConfigLoadError("alarms must be a JSON array")

        alarms: List[AlarmRecord] = []
        seen_ids: Set[str] = set()
        for item in raw_alarms:
            try:
                alarm = AlarmRecord.from_dict(item)
            except (AttributeError, TypeError, ValueError) as exc:
                logger.warning("Skipping alarm item due to parse error: %s", exc)
                continue
            if alarm.id in seen_ids:
                logger.warning("Duplicate alarm id %s, assigning a new one", alarm.id)
                alarm.id = new_alarm_id()
            seen_ids.add(alarm.id)
            alarms.append(alarm)
        return settings, alarms

    def _write(self, settings: GlobalSettings, alarms: Iterable[AlarmRecord]) -> None:
        payload = {"alarms": [a.to_dict() for a in alarms]}
        payload.update(settings.to_dict())
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".alarm_config.", suffix=".tmp", dir=self.path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            raise ConfigSaveError(str(exc)) from exc
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
