"""
Logging setup for the voucher finder.

All modules log through the standard library with one shared configuration:
- Rotating file log (logs/app.log by default, 5MB per file, 3 backups)
- Console output when DEBUG is on or when running under systemd (USE_JOURNALD=true)
- Line format: {timestamp} - {level} - {source} - {message}

httpx and httpcore log every request at INFO. Their level is raised to
WARNING so that a scrape cycle over many result pages doesn't flood the file.
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from voucher_finder.config import settings


# Project root (logging.py is in voucher_finder/utils/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# journald stamps lines itself
JOURNALD_FORMAT = "%(levelname)s - %(name)s - %(message)s"

NOISY_LOGGERS = ("httpx", "httpcore")


def _resolve_log_file() -> Path:
    """Return the absolute log file path, creating its directory."""
    log_file = Path(settings.LOG_FILE)
    if not log_file.is_absolute():
        log_file = PROJECT_ROOT / log_file
    log_file.parent.mkdir(parents=True, exist_ok=True)
    return log_file


def _resolve_level() -> int:
    level = getattr(logging, settings.LOG_LEVEL, None)
    if not isinstance(level, int):
        # logging isn't configured yet, so print
        print(
            f"WARNING: Invalid LOG_LEVEL '{settings.LOG_LEVEL}'. "
            f"Valid levels: DEBUG, INFO, WARNING, ERROR, CRITICAL. "
            f"Falling back to INFO."
        )
        return logging.INFO
    return level


def _use_journald() -> bool:
    return os.environ.get("USE_JOURNALD", "").lower() in ("true", "1", "yes")


def setup_logging() -> None:
    """
    Configure the root logger for the whole application.

    Safe to call more than once: existing root handlers are replaced.
    """
    log_file = _resolve_log_file()
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(_resolve_level())
    root_logger.handlers.clear()

    file_handler = RotatingFileHandler(
        filename=str(log_file),
        maxBytes=settings.LOG_MAX_SIZE,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)

    journald = _use_journald()
    if settings.DEBUG or journald:
        console_handler = logging.StreamHandler(sys.stdout)
        if journald:
            console_handler.setFormatter(logging.Formatter(JOURNALD_FORMAT))
        else:
            console_handler.setFormatter(formatter)
        console_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(
        f"Logging initialized. Level: {settings.LOG_LEVEL}, File: {log_file}, "
        f"Max size: {settings.LOG_MAX_SIZE} bytes, Backups: {settings.LOG_BACKUP_COUNT}"
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger; use `get_logger(__name__)`."""
    return logging.getLogger(name)
