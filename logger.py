#!/usr/bin/env python3
"""
Logging setup for fusion sentry.

Every module under fusion/ logs through a named logger; the CLI calls
setup_logging() once so console and optional file output share one format.

ResultLog keeps the operator-facing history of alerts and 30 s window
summaries, separate from the diagnostic log stream.

Usage:
    from logger import get_logger
    log = get_logger(__name__)
    log.info("Sonar started")
    log.warning("Audio capture unavailable: %s", err)
"""
import logging
import sys
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ColoredFormatter(logging.Formatter):
    """Color-coded log formatter for terminal output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        if sys.stdout.isatty():
            color = self.COLORS.get(record.levelname, '')
            reset = self.COLORS['RESET']
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{color}{record.levelname}{reset}"
        return super().format(record)


def setup_logging(
    log_file: Optional[Path] = None,
    level: str = "INFO",
    debug: bool = False
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        log_file: Path to log file (if None, only console logging)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        debug: If True, force DEBUG level

    Returns:
        Root logger
    """
    if debug:
        level = "DEBUG"

    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    return root_logger


def setup_logging_from_config(config: Dict[str, Any], debug: bool = False) -> logging.Logger:
    """Configure logging from the ``logging`` section of a loaded config."""
    section = config.get("logging", {})
    log_file = section.get("log_file")
    return setup_logging(
        log_file=Path(log_file) if log_file else None,
        level=section.get("level", "INFO"),
        debug=debug
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


# Result colours counted as active alerts: live electronics and detected persons
ALERT_COLORS = ("#D32F2F", "#9C27B0")


@dataclass(frozen=True)
class LogEntry:
    """One line of the result log shown to the operator."""
    timestamp: float
    message: str
    color: str


class ResultLog:
    """
    Bounded in-memory log of alerts and window summaries.

    Newest entries come first. Realtime alerts keep the last 1000 entries,
    window summaries the last 50. Shared by the session threads and the
    display, so all access is locked.
    """

    def __init__(self, realtime_size: int = 1000, summary_size: int = 50):
        self._realtime: Deque[LogEntry] = deque(maxlen=realtime_size)
        self._summaries: Deque[LogEntry] = deque(maxlen=summary_size)
        self._lock = threading.Lock()

    def add_realtime(self, message: str, color: str, timestamp: Optional[float] = None) -> None:
        entry = LogEntry(time.time() if timestamp is None else timestamp, message, color)
        with self._lock:
            self._realtime.appendleft(entry)

    def add_summary(self, message: str, color: str, timestamp: Optional[float] = None) -> None:
        entry = LogEntry(time.time() if timestamp is None else timestamp, message, color)
        with self._lock:
            self._summaries.appendleft(entry)

    @property
    def realtime(self) -> List[LogEntry]:
        with self._lock:
            return list(self._realtime)

    @property
    def summaries(self) -> List[LogEntry]:
        with self._lock:
            return list(self._summaries)

    @property
    def threat_count(self) -> int:
        with self._lock:
            return len(self._realtime)

    def active_alert_count(self, now: Optional[float] = None, window_sec: float = 60.0) -> int:
        """Alerts with an alert colour logged within the last ``window_sec``."""
        cutoff = (time.time() if now is None else now) - window_sec
        with self._lock:
            return sum(
                1 for entry in self._realtime
                if entry.timestamp > cutoff and entry.color in ALERT_COLORS
            )

    def format_summary_log(self) -> str:
        """Summaries as ``HH:MM:SS: message`` blocks, newest first."""
        with self._lock:
            entries = list(self._summaries)
        return "\n\n".join(
            f"{datetime.fromtimestamp(entry.timestamp).strftime('%H:%M:%S')}: {entry.message}"
            for entry in entries
        )

    def clear(self) -> None:
        with self._lock:
            self._realtime.clear()
            self._summaries.clear()
