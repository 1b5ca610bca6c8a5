"""
Cancellation for long runs.

``CancellationToken`` is the signal the engine checks at every sample and
stage boundary. ``GracefulShutdown`` maps SIGINT/SIGTERM onto a token so a
Ctrl+C stops the run at the next boundary instead of killing it mid-sample.
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from typing import Optional


class CancellationToken:
    """Thread-safe, one-way stop flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason = ""

    def cancel(self, reason: str = "cancellation requested") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class GracefulShutdown:
    """
    Context manager for graceful shutdown on SIGINT/SIGTERM.

    The first signal cancels ``token``, a second one exits immediately.

    Example:
        >>> with GracefulShutdown() as shutdown:
        ...     experiment.run(cancel=shutdown.token)
    """

    def __init__(self, token: Optional[CancellationToken] = None):
        self.token = token or CancellationToken()
        self._original_sigint = None
        self._original_sigterm = None
        self.logger = logging.getLogger("spikepipe.shutdown")

    def __enter__(self) -> "GracefulShutdown":
        self._original_sigint = signal.signal(signal.SIGINT, self._handler)
        self._original_sigterm = signal.signal(signal.SIGTERM, self._handler)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        signal.signal(signal.SIGINT, self._original_sigint)
        signal.signal(signal.SIGTERM, self._original_sigterm)
        return False

    def _handler(self, signum: int, frame) -> None:
        if self.token.cancelled:
            self.logger.error("Forced shutdown. Exiting immediately!")
            sys.exit(1)

        self.token.cancel(f"signal {signum}")
        self.logger.warning(
            "Shutdown requested. Stopping at the next sample... "
            "(Press Ctrl+C again to force quit)"
        )

    @property
    def should_stop(self) -> bool:
        """Check if shutdown was requested."""
        return self.token.cancelled


__all__ = [
    "CancellationToken",
    "GracefulShutdown",
]
