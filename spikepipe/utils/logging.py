"""
Logging setup for spikepipe.

All loggers live under the ``spikepipe`` hierarchy. ``setup_logging``
installs a colored console handler and, optionally, a detailed file handler.

The engine does not use module-level verbosity switches. Each run owns a
``RunLog`` that wraps the loggers it writes to and is handed to every
collaborator that reports something (loader, analyses, observers).
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union


class ColoredFormatter(logging.Formatter):
    """Formatter with ANSI color codes for different log levels."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy so file handlers sharing the record keep a plain level name
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, '')
        record.levelname = f"{color}{record.levelname:8s}{self.RESET}"
        return super().format(record)


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Union[str, Path]] = None,
    experiment_name: str = "spikepipe",
    color: bool = True,
) -> logging.Logger:
    """
    Setup logging with console and optional file handlers.

    Args:
        level: Logging level name.
        log_dir: Directory for a log file. No file handler when None.
        experiment_name: Prefix of the log file name.
        color: Use ANSI colors on the console.

    Returns:
        Configured ``spikepipe`` logger.
    """
    logger = logging.getLogger("spikepipe")
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    fmt_cls = ColoredFormatter if color else logging.Formatter
    console_handler.setFormatter(fmt_cls(
        '%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    ))
    logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_dir / f"{experiment_name}_{timestamp}.log"
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)
        logger.info(f"Logging initialized: {log_file}")

    return logger


class RunLog:
    """
    Logging context of one engine run.

    Attributes:
        run: Progress lines (stages, timings, load summary).
        results: Analysis results.
    """

    def __init__(self, name: str = "run", parent: Optional[logging.Logger] = None) -> None:
        parent = parent or logging.getLogger("spikepipe")
        self.name = name
        self.run = parent.getChild(f"run.{name}")
        self.results = parent.getChild(f"results.{name}")

    def print(self, message: str) -> None:
        """Progress line."""
        self.run.info(message)

    def log(self, message: str) -> None:
        """Result line."""
        self.results.info(message)

    def warning(self, message: str) -> None:
        self.run.warning(message)

    def error(self, message: str) -> None:
        self.run.error(message)

    def debug(self, message: str) -> None:
        self.run.debug(message)


__all__ = [
    "ColoredFormatter",
    "setup_logging",
    "RunLog",
]
