from __future__ import annotations

import ctypes
import logging
import sys

logger = logging.getLogger(__name__)

DEFAULT_VOLUME = 50


def _clamp(percent: int) -> int:
    return max(0, min(100, int(percent)))


class VolumeController:
    def set_volume(self, percent: int) -> None:
        raise NotImplementedError

    def get_volume(self) -> int:
        raise NotImplementedError


class MemoryVolumeController(VolumeController):
    """Remembers the last requested level without touching the OS mixer."""

    def __init__(self, initial: int = DEFAULT_VOLUME):
        self._level = _clamp(initial)

    def set_volume(self, percent: int) -> None:
        self._level = _clamp(percent)

    def get_volume(self) -> int:
        return self._level


class WinmmVolumeController(VolumeController):
    """Wave-out volume via winmm; both channels share one level."""

    def __init__(self) -> None:
        self._winmm = ctypes.windll.winmm  # type: ignore[attr-defined]

    def set_volume(self, percent: int) -> None:
        level = _clamp(percent) * 0xFFFF // 100
        stereo = (level << 16) | level
        result = self._winmm.waveOutSetVolume(None, ctypes.c_uint(stereo))
        if result != 0:
            logger.warning("waveOutSetVolume returned %s", result)

    def get_volume(self) -> int:
        raw = ctypes.c_uint(0)
        result = self._winmm.waveOutGetVolume(None, ctypes.byref(raw))
        if result != 0:
            logger.warning("waveOutGetVolume returned %s, reporting default", result)
            return DEFAULT_VOLUME
        left = raw.value & 0xFFFF
        return left * 100 // 0xFFFF


def default_volume_controller() -> VolumeController:
    if sys.platform == "win32":
        try:
            return WinmmVolumeController()
        except (AttributeError, OSError) as exc:  # pragma: no cover - platform specific
            logger.warning("winmm volume control unavailable: %s", exc)
    return MemoryVolumeController()
