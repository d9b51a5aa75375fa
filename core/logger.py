"""
Application logging.

Everything logs through the "hostel" logger (or a child of it, see get_logger)
to stdout and, when LOG_FILE is writable, to a size-rotated file.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import config

ROOT_LOGGER_NAME = "hostel"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _file_handler(log_file: Path, max_bytes: int, backup_count: int) -> Optional[logging.Handler]:
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    except OSError as e:
        # Read-only containers still get console output
        sys.stderr.write(f"File logging disabled ({log_file}): {e}\n")
        return None


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure the application logger. Safe to call again (e.g. on reload).

    Args:
        level: Level name such as DEBUG or INFO
        log_file: Rotating log file; None for console only
        max_bytes: Size at which the file rotates
        backup_count: Rotated files kept

    Returns:
        The "hostel" logger
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.getLevelName(level.upper()) if isinstance(level, str) else level)
    root.handlers.clear()
    root.propagate = False

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handler = _file_handler(Path(log_file), max_bytes, backup_count)
        if handler is not None:
            handlers.append(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    return root


def get_logger(component: str) -> logging.Logger:
    """Child logger, e.g. get_logger("mail") logs as hostel.mail."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")


logger = configure_logging(
    level="DEBUG" if config.DEBUG else config.LOG_LEVEL,
    log_file=config.LOG_FILE,
    max_bytes=config.LOG_MAX_BYTES,
    backup_count=config.LOG_BACKUP_COUNT,
)
