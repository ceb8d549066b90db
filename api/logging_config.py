"""
Logging configuration for the MMX uploader.

Every module logs through logging.getLogger(__name__); setup_logging wires
the root logger to three sinks: colored console, rotating files (all and
errors-only), and the telemetry broadcaster behind the dashboard.
"""

import sys
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from monitoring.telemetry import EventBroadcaster, TelemetryLogHandler

CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
FILE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

# Libraries whose debug output is noise in the run log
QUIET_LOGGERS = ("asyncio", "aiohttp.access", "uvicorn.access")


class ColoredFormatter(logging.Formatter):
    """Level-colored console formatter."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        # Color a copy so file handlers keep the plain level name
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def _rotating_handler(path: Path, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    log_dir: str,
    level: str = "INFO",
    name: Optional[str] = None,
    broadcaster: Optional[EventBroadcaster] = None,
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_dir: Directory for the rotating log files
        level: Log level name
        name: Logger name (default: root logger, so module loggers propagate)
        broadcaster: Optional telemetry broadcaster to mirror records into

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    stem = name or "mmx_uploader"

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG)
    console.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console)

    logger.addHandler(_rotating_handler(log_path / f"{stem}.log", logging.DEBUG))
    logger.addHandler(_rotating_handler(log_path / f"{stem}_errors.log", logging.ERROR))

    if broadcaster is not None:
        telemetry = TelemetryLogHandler(broadcaster)
        telemetry.setLevel(logging.INFO)
        logger.addHandler(telemetry)

    for noisy in QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


def log_browser_event(worker_key: str, event: str, details: str = None):
    """Log a browser session lifecycle event."""
    logger = logging.getLogger("browser.events")
    if details:
        logger.info(f"Browser [{worker_key}] {event}: {details}")
    else:
        logger.info(f"Browser [{worker_key}] {event}")
