"""
Logging and cancellation helpers.
"""

from .logging import ColoredFormatter, setup_logging, RunLog
from .signals import CancellationToken, GracefulShutdown


__all__ = [
    "ColoredFormatter",
    "setup_logging",
    "RunLog",
    "CancellationToken",
    "GracefulShutdown",
]
