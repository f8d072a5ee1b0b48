"""Logging setup for the native host.

stdout is reserved for native-messaging frames, so every handler installed
here writes to stderr or to a file.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAME = "i18n-host"

_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
_DATEFMT = "%H:%M:%S"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def parse_level(value: Optional[str], default: int = logging.INFO) -> int:
    raw = str(value or "").strip().lower()
    return _LEVELS.get(raw, default)


def configure_logging(level: str = "info", log_file: Optional[str] = None) -> logging.Logger:
    """Route the host logger to stderr (and optionally a file).

    Calling this again replaces the previously installed handlers, so the
    level can be refined once the config file has been read.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)
    console_level = parse_level(level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    effective = console_level
    if log_file:
        path = Path(log_file).expanduser()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, encoding="utf-8")
        except OSError as exc:
            logger.warning("Cannot open log file %s: %s", path, exc)
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
            effective = logging.DEBUG

    logger.setLevel(effective)
    # The root logger may have a stdout handler installed by an embedding app.
    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if not name:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
