"""
Exceptions raised by the spikepipe execution engine.

Fatal errors (configuration, shape contracts) propagate to the top of a run
and terminate it. Per-entry loading errors are caught at the loader boundary
and reported as counters, they never escape as exceptions.
"""

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# BASE
# =============================================================================


class SpikePipeError(Exception):
    """Base exception for spikepipe errors."""
    pass


# =============================================================================
# FATAL / ABORT-RUN
# =============================================================================


class PipelineConfigError(SpikePipeError):
    """Raised for pipeline misconfiguration (zero passes, unresolved shapes)."""
    pass


class ShapeMismatchError(SpikePipeError):
    """
    Raised when a stage produces a sample whose shape differs from its
    declared output shape.

    Attributes:
        actual: Shape produced by the stage.
        expected: Shape declared by the stage.
        stage: Name of the offending stage.
        sample_index: Index of the sample in its partition.
    """

    def __init__(
        self,
        actual: Any,
        expected: Any,
        stage: str = "",
        sample_index: Optional[int] = None,
    ) -> None:
        self.actual = actual
        self.expected = expected
        self.stage = stage
        self.sample_index = sample_index
        where = f" in {stage}" if stage else ""
        if sample_index is not None:
            where += f" at sample #{sample_index}"
        super().__init__(
            f"Unexpected shape{where} (actual: {_fmt(actual)}, expected: {_fmt(expected)})"
        )


class SampleProcessingError(SpikePipeError):
    """Raised when a sample fails inside a parallel pass, tagged with its index."""

    def __init__(self, index: int, cause: BaseException) -> None:
        self.index = index
        self.cause = cause
        super().__init__(f"Sample #{index} failed: {cause}")


class DataLoadingError(SpikePipeError):
    """Raised when a required data source cannot be opened at all."""
    pass


# =============================================================================
# CONTROL FLOW
# =============================================================================


class ExecutionCancelled(SpikePipeError):
    """Raised when a run stops because cancellation was requested."""
    pass


class InputExhaustedError(SpikePipeError):
    """Raised by Input.next() when called after has_next() returned False."""
    pass


def _fmt(shape: Any) -> str:
    to_string = getattr(shape, "to_string", None)
    return to_string() if callable(to_string) else str(tuple(shape))


__all__ = [
    "SpikePipeError",
    "PipelineConfigError",
    "ShapeMismatchError",
    "SampleProcessingError",
    "DataLoadingError",
    "ExecutionCancelled",
    "InputExhaustedError",
]
