# config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_HOURLY_RATE = 750.0
DEFAULT_WORK_DAY_HOURS = 7.5
DEFAULT_WORK_WEEK_HOURS = 37.5
DATA_FILE_NAME = "timetracking-data.json"
SQLITE_FILE_NAME = "timetracking.db"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    hourly_rate: float = DEFAULT_HOURLY_RATE
    work_day_hours: float = DEFAULT_WORK_DAY_HOURS
    work_week_hours: float = DEFAULT_WORK_WEEK_HOURS
    storage_type: str = "file"
    data_file: Path = Path(DATA_FILE_NAME)
    database_url: str = f"sqlite:///{SQLITE_FILE_NAME}"
    app_password: str | None = None
    log_level: str = "INFO"


def pick_data_dir() -> Path:
    """First writable directory among $DATA_DIR, /data and ./data (falls back to cwd)."""
    candidates = []
    env = os.getenv("DATA_DIR")
    if env:
        candidates.append(Path(env))
    candidates += [Path("/data"), Path.cwd() / "data"]

    for p in candidates:
        try:
            p.mkdir(parents=True, exist_ok=True)
            t = p / ".rwtest"
            t.write_text("ok")
            t.unlink(missing_ok=True)
            return p
        except OSError:
            continue
    return Path.cwd()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


def load_settings() -> Settings:
    storage_type = os.getenv("STORAGE_TYPE", "file").strip().lower()
    if storage_type not in ("file", "database"):
        raise ValueError(f"STORAGE_TYPE must be 'file' or 'database', got {storage_type!r}")

    data_dir = pick_data_dir()
    data_file = Path(os.getenv("DATA_FILE") or data_dir / DATA_FILE_NAME)
    default_sqlite = f"sqlite:///{(data_dir / SQLITE_FILE_NAME).as_posix()}"

    return Settings(
        hourly_rate=_env_float("HOURLY_RATE", DEFAULT_HOURLY_RATE),
        work_day_hours=_env_float("WORK_DAY_HOURS", DEFAULT_WORK_DAY_HOURS),
        work_week_hours=_env_float("WORK_WEEK_HOURS", DEFAULT_WORK_WEEK_HOURS),
        storage_type=storage_type,
        data_file=data_file,
        database_url=os.getenv("DATABASE_URL", default_sqlite),
        app_password=os.getenv("APP_PASSWORD") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    logger.debug("Logging configured at %s", level)


__all__ = ["Settings", "load_settings", "configure_logging", "pick_data_dir"]
