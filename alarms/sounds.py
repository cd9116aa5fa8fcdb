from __future__ import annotations

import logging
import wave
from pathlib import Path
from threading import Event, Thread
from typing import Optional

import numpy as np

from .storage import AlarmRecord
from .volume import VolumeController

try:
    import winsound
except ImportError:  # pragma: no cover - non-Windows fallback
    winsound = None  # type: ignore

logger = logging.getLogger(__name__)

SAMPLE_RATE = 24000
TONE_FREQ = 880.0


def ensure_alarm_sound(path: Path, duration_seconds: float = 1.5) -> None:
    if path.exists():
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    t = np.arange(int(duration_seconds * SAMPLE_RATE)) / SAMPLE_RATE
    # Two short beeps per loop, the second half silent.
    envelope = (t % 0.5 < 0.25).astype(np.float64)
    samples = (32767 * 0.4 * envelope * np.sin(2 * np.pi * TONE_FREQ * t)).astype("<i2")
    with wave.open(str(path), "w") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(SAMPLE_RATE)
        wav.writeframes(samples.tobytes())
    logger.info("Generated default alarm sound at %s", path)


class AlarmSoundPlayer:
    """Loops an alarm's sound until stopped.

    winsound only plays WAV, so other formats fall back to the default tone.
    """

    def __init__(self, default_sound_path: Path, volume_controller: Optional[VolumeController] = None):
        self.default_sound_path = default_sound_path
        self.volume_controller = volume_controller
        self._stop_event = Event()
        self._beep_thread: Optional[Thread] = None
        self._restore_volume: Optional[int] = None

    def resolve_sound(self, music_path: Optional[str]) -> Path:
        if music_path:
            candidate = Path(music_path)
            if candidate.is_file() and candidate.suffix.lower() == ".wav":
                return candidate
            logger.warning("Alarm sound %s unusable, playing default tone", music_path)
        ensure_alarm_sound(self.default_sound_path)
        return self.default_sound_path

    def play_alarm(self, alarm: AlarmRecord) -> None:
        self.start_loop(alarm.music_file_path, alarm.volume)

    def start_loop(self, music_path: Optional[str] = None, volume: Optional[int] = None) -> None:
        sound_path = self.resolve_sound(music_path)
        self._apply_volume(volume)
        self._stop_event.clear()
        if winsound:
            try:
                winsound.PlaySound(
                    str(sound_path),
                    winsound.SND_FILENAME | winsound.SND_LOOP | winsound.SND_ASYNC,
                )
                return
            except RuntimeError:
                logger.warning("winsound.PlaySound failed, falling back to beep loop")

        if self._beep_thread and self._beep_thread.is_alive():
            return
        self._beep_thread = Thread(target=self._beep_loop, name="alarm-beep", daemon=True)
        self._beep_thread.start()

    def stop_loop(self) -> None:
        self._stop_event.set()
        if winsound:
            try:
                winsound.PlaySound(None, winsound.SND_PURGE)
            except RuntimeError:
                logger.debug("winsound.PlaySound purge failed")
        self._restore()

    def _apply_volume(self, volume: Optional[int]) -> None:
        if self.volume_controller is None or volume is None:
            return
        if self._restore_volume is None:
            self._restore_volume = self.volume_controller.get_volume()
        self.volume_controller.set_volume(volume)

    def _restore(self) -> None:
        if self.volume_controller is None or self._restore_volume is None:
            return
        self.volume_controller.set_volume(self._restore_volume)
        self._restore_volume = None

    def _beep_loop(self) -> None:  # pragma: no cover - timing loop
        while not self._stop_event.is_set():
            if winsound:
                try:
                    winsound.Beep(int(TONE_FREQ), 250)
                except RuntimeError:
                    logger.debug("winsound.Beep failed inside loop")
            else:
                logger.info("Alarm ringing...")
            self._stop_event.wait(0.75)
