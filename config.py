import logging
import logging.handlers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from alarms.storage import default_app_dir, default_config_path


def _get_env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip() in {"1", "true", "True", "yes", "YES", "y"}


def _get_env_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return int(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _get_env_path(name: str, default: Path) -> Path:
    val = os.getenv(name)
    return Path(val).expanduser() if val else default


@dataclass
class AppConfig:
    config_path: Path
    alarm_sound_path: Path
    alarm_check_interval_ms: int
    timezone_name: Optional[str]
    presence_fallback_active: bool
    debug: bool
    log_level: str
    log_dir: Path


def load_config(env_path: Optional[Path] = None) -> AppConfig:
    if env_path is None:
        env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    app_dir = default_app_dir()
    debug = _get_env_bool("DEBUG", False)
    log_level = os.getenv("LOG_LEVEL", "DEBUG" if debug else "INFO").upper()
    check_interval_ms = _get_env_int("ALARM_CHECK_INTERVAL_MS", 1000)
    if check_interval_ms > 1000:
        # Slower cadence can step over the one-second match window.
        logging.warning("ALARM_CHECK_INTERVAL_MS=%s may miss alarms, clamping to 1000", check_interval_ms)
        check_interval_ms = 1000

    return AppConfig(
        config_path=_get_env_path("ALARM_CONFIG_PATH", default_config_path()),
        alarm_sound_path=_get_env_path("ALARM_SOUND_PATH", app_dir / "alarm.wav"),
        alarm_check_interval_ms=check_interval_ms,
        timezone_name=os.getenv("ALARM_TIMEZONE") or None,
        presence_fallback_active=_get_env_bool("PRESENCE_FALLBACK_ACTIVE", True),
        debug=debug,
        log_level=log_level,
        log_dir=_get_env_path("LOG_DIR", Path("logs")),
    )


def setup_logging(log_level: str = "INFO", log_dir: Path = Path("logs")) -> None:
    log_dir.mkdir(parents=True, exist_ok=True)

    log_path = log_dir / "alarm_clock.log"
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=[file_handler, console_handler],
    )
