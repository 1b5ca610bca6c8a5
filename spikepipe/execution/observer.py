"""
Progress observers.

The engine reports progress through an observer and never reads anything
back from it:

    - ``tick(stage_index, counter)`` after every main-pipeline sample
    - ``refresh(stage_index)`` every ``refresh_interval`` samples
    - ``stage_started`` / ``stage_finished`` around each stage
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional, Tuple


class ProgressObserver:
    """No-op observer. Subclass and override what you need."""

    def stage_started(self, stage_index: int, stage_name: str) -> None:
        pass

    def tick(self, stage_index: int, counter: int) -> None:
        pass

    def refresh(self, stage_index: int) -> None:
        pass

    def stage_finished(self, stage_index: int, elapsed: float) -> None:
        pass


class LoggingObserver(ProgressObserver):
    """Log the sample counter and throughput on every refresh."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("spikepipe.progress")
        self._counter = 0
        self._start = time.perf_counter()

    def stage_started(self, stage_index: int, stage_name: str) -> None:
        self._counter = 0
        self._start = time.perf_counter()

    def tick(self, stage_index: int, counter: int) -> None:
        self._counter = counter + 1

    def refresh(self, stage_index: int) -> None:
        elapsed = time.perf_counter() - self._start
        rate = self._counter / max(elapsed, 1e-6)
        self.logger.info(
            f"  stage {stage_index}: {self._counter} samples ({rate:.1f} samples/s)"
        )


class RecordingObserver(ProgressObserver):
    """Keep every call, in order."""

    def __init__(self) -> None:
        self.ticks: List[Tuple[int, int]] = []
        self.refreshes: List[int] = []
        self.started: List[Tuple[int, str]] = []
        self.finished: List[int] = []

    def stage_started(self, stage_index: int, stage_name: str) -> None:
        self.started.append((stage_index, stage_name))

    def tick(self, stage_index: int, counter: int) -> None:
        self.ticks.append((stage_index, counter))

    def refresh(self, stage_index: int) -> None:
        self.refreshes.append(stage_index)

    def stage_finished(self, stage_index: int, elapsed: float) -> None:
        self.finished.append(stage_index)


__all__ = [
    "ProgressObserver",
    "LoggingObserver",
    "RecordingObserver",
]
