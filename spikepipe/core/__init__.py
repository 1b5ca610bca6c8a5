"""
Core building blocks: sample storage, stages, analyses and output taps.
"""

# =============================================================================
# STORAGE
# =============================================================================

from .tensor import (
    Shape,
    SparseTensor,
    BufferArena,
    to_sparse,
    from_sparse,
)

# =============================================================================
# STAGES AND ANALYSES
# =============================================================================

from .process import Process, UniquePassProcess, TwoPassProcess
from .analysis import Analysis, UniquePassAnalysis, NoPassAnalysis

# =============================================================================
# OUTPUT TAPS
# =============================================================================

from .output import (
    OutputConverter,
    DefaultOutput,
    ScaledOutput,
    TimeObjectiveOutput,
    FunctionOutput,
    as_converter,
    Output,
)


__all__ = [
    # Storage
    "Shape",
    "SparseTensor",
    "BufferArena",
    "to_sparse",
    "from_sparse",
    # Stages
    "Process",
    "UniquePassProcess",
    "TwoPassProcess",
    # Analyses
    "Analysis",
    "UniquePassAnalysis",
    "NoPassAnalysis",
    # Output taps
    "OutputConverter",
    "DefaultOutput",
    "ScaledOutput",
    "TimeObjectiveOutput",
    "FunctionOutput",
    "as_converter",
    "Output",
]
