"""
Execution engine with sparse intermediate storage.
"""

from .loader import LoadReport, LoadResult, load_partition
from .observer import ProgressObserver, LoggingObserver, RecordingObserver
from .engine import StageReport, RunSummary, SparseIntermediateExecution


__all__ = [
    # Loading
    "LoadReport",
    "LoadResult",
    "load_partition",
    # Progress
    "ProgressObserver",
    "LoggingObserver",
    "RecordingObserver",
    # Engine
    "StageReport",
    "RunSummary",
    "SparseIntermediateExecution",
]
