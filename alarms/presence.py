from __future__ import annotations

import ctypes
import logging
import sys
from typing import Optional

from .errors import PresenceQueryError

logger = logging.getLogger(__name__)


class PresenceOracle:
    """Answers whether the user touched keyboard or mouse recently."""

    def is_user_active(self, threshold_seconds: int) -> bool:
        raise NotImplementedError


class StaticPresenceOracle(PresenceOracle):
    """Fixed answer. Used where the platform offers no idle-time query."""

    def __init__(self, active: bool = True):
        self.active = active

    def is_user_active(self, threshold_seconds: int) -> bool:
        return self.active


class _LastInputInfo(ctypes.Structure):
    _fields_ = [("cbSize", ctypes.c_uint), ("dwTime", ctypes.c_uint)]


class WindowsPresenceOracle(PresenceOracle):
    def __init__(self) -> None:
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        self._kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]

    def idle_milliseconds(self) -> int:
        info = _LastInputInfo()
        info.cbSize = ctypes.sizeof(info)
        if not self._user32.GetLastInputInfo(ctypes.byref(info)):
            raise PresenceQueryError("GetLastInputInfo failed")
        # Both counters wrap at 2**32 ms.
        now = self._kernel32.GetTickCount() & 0xFFFFFFFF
        return (now - info.dwTime) & 0xFFFFFFFF

    def is_user_active(self, threshold_seconds: int) -> bool:
        return self.idle_milliseconds() < threshold_seconds * 1000


def default_presence_oracle(fallback_active: bool = True) -> PresenceOracle:
    if sys.platform == "win32":
        try:
            return WindowsPresenceOracle()
        except (AttributeError, OSError) as exc:  # pragma: no cover - platform specific
            logger.warning("Windows idle detection unavailable: %s", exc)
    logger.info("No idle-time source on %s, assuming user is %s", sys.platform, "active" if fallback_active else "idle")
    return StaticPresenceOracle(active=fallback_active)


def query_presence(oracle: Optional[PresenceOracle], threshold_seconds: int) -> bool:
    """Ask the oracle, treating any failure as "user active".

    Active is the fallback because the active-user rule still ends ringing
    after the alarm's custom duration.
    """
    if oracle is None:
        return True
    try:
        return bool(oracle.is_user_active(threshold_seconds))
    except Exception as exc:
        logger.warning("Presence query failed, assuming user is active: %s", exc)
        return True
