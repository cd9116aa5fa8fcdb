import logging
import signal
import time

from alarms.holidays import HolidayCalendar
from alarms.manager import AlarmManager
from alarms.music import MusicLibrary
from alarms.presence import default_presence_oracle
from alarms.sounds import AlarmSoundPlayer
from alarms.storage import AlarmRecord, ConfigStore
from alarms.volume import default_volume_controller
from config import AppConfig, load_config, setup_logging
from time_utils import format_tz_offset, resolve_timezone

logger = logging.getLogger("alarm_clock")


def graceful_exit(signum, frame) -> None:  # pragma: no cover - signal handler
    logger.info("Shutting down (signal %s)", signum)
    raise KeyboardInterrupt()


class AlarmClockRuntime:
    """Wires the scheduler to the sound player and the platform adapters."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.tzinfo = resolve_timezone(config.timezone_name)
        self.calendar = HolidayCalendar()
        self.sound_player = AlarmSoundPlayer(config.alarm_sound_path, default_volume_controller())
        self.alarm_manager = AlarmManager(
            store=ConfigStore(config.config_path),
            presence=default_presence_oracle(config.presence_fallback_active),
            calendar=self.calendar,
            check_interval=config.alarm_check_interval_ms / 1000.0,
            on_alarm_triggered=self._on_alarm_triggered,
            on_alarm_stopped=self._on_alarm_stopped,
            on_alarms_changed=self._on_alarms_changed,
            timezone=self.tzinfo,
        )
        self.music_library: MusicLibrary | None = None

    def start(self) -> None:
        self.alarm_manager.start()
        self.music_library = MusicLibrary(self.alarm_manager.settings.music_folder_path or None)
        logger.info(
            "Alarm clock running (tz offset %s, music folder %s)",
            format_tz_offset(self.tzinfo) or "local",
            self.music_library.folder,
        )
        self._log_schedule()

    def shutdown(self) -> None:
        self.alarm_manager.shutdown()
        self.sound_player.stop_loop()

    def _log_schedule(self) -> None:
        today = self.alarm_manager.now().date()
        holiday = self.calendar.holiday_name(today)
        if holiday:
            logger.info("Today is a holiday: %s", holiday)
        for alarm in self.alarm_manager.list_alarms():
            days = ",".join(str(d) for d in sorted(alarm.days_of_week)) or "daily"
            logger.info(
                "  %s %-20s enabled=%s days=%s skip_holidays=%s",
                alarm.time_label,
                alarm.name,
                alarm.enabled,
                days,
                alarm.exclude_holidays,
            )

    def _on_alarm_triggered(self, alarm: AlarmRecord) -> None:
        logger.info("Ringing: %s (%s)", alarm.name, alarm.time_label)
        self.sound_player.play_alarm(alarm)

    def _on_alarm_stopped(self, alarm: AlarmRecord) -> None:
        self.sound_player.stop_loop()

    def _on_alarms_changed(self) -> None:
        logger.debug("Alarm list now has %s entries", len(self.alarm_manager.list_alarms()))


def main() -> None:
    config = load_config()
    setup_logging(config.log_level, config.log_dir)
    logger.info("Starting alarm clock (settings=%s)", config.config_path)
    signal.signal(signal.SIGINT, graceful_exit)

    runtime = AlarmClockRuntime(config)
    runtime.start()
    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        runtime.shutdown()


if __name__ == "__main__":
    main()
