"""Logging setup: console, daily log files, and the supervisor status channel.

Log format:
    2026-10-19 10:15:30 [INFO    ] [SpoolPoll] receipt_interceptor.watcher - ...
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from typing import TYPE_CHECKING

from receipt_interceptor.status import StatusLogHandler

if TYPE_CHECKING:
    from pathlib import Path

    from receipt_interceptor.status import StatusChannel

LOGGER_NAME = "receipt_interceptor"
LOG_FILENAME = "interceptor.log"
LOG_RETENTION_DAYS = 7

_FORMAT = "%(asctime)s [%(levelname)-8s] [%(threadName)s] %(name)s - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: int = logging.INFO,
    log_dir: Path | None = None,
    channel: StatusChannel | None = None,
) -> logging.Logger:
    """Configure the package logger.

    - Console handler on stderr, so stdout stays free for status events.
    - One log file per day under ``log_dir``, files older than
      LOG_RETENTION_DAYS removed on rollover.
    - Optional forwarding of records to a supervisor status channel.

    Calling again replaces the previous handlers.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=log_dir / LOG_FILENAME,
            when="midnight",
            backupCount=LOG_RETENTION_DAYS,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if channel is not None:
        logger.addHandler(StatusLogHandler(channel))

    logger.debug("Logging configured at level %s", logging.getLevelName(level))
    return logger
