"""
spikepipe: staged, sparse-storage execution of feature-extraction pipelines.

A dataset of labeled 4-D samples ``(height, width, depth, channels)`` flows
through an ordered pipeline of stateful stages. Between stages, samples are
kept compressed. Output taps fork the pipeline at any stage and feed
converted, post-processed copies to analyses.

Example:
    >>> from spikepipe import Experiment, NumpyInput
    >>> from spikepipe.processes import MaxScaling, LatencyCoding
    >>> from spikepipe.analysis import Svm
    >>>
    >>> exp = Experiment("latency")
    >>> exp.add_train(NumpyInput("data/train"))
    >>> exp.add_test(NumpyInput("data/test"))
    >>> exp.push(MaxScaling())
    >>> exp.output(None, exp.push(LatencyCoding()), "coding").add_analysis(Svm())
    >>> summary = exp.run()
"""

__version__ = "0.1.0"

from .errors import (
    SpikePipeError,
    PipelineConfigError,
    ShapeMismatchError,
    SampleProcessingError,
    DataLoadingError,
    ExecutionCancelled,
    InputExhaustedError,
)
from .config import ExecutionParams, LoggingParams, load_config
from .core import (
    Shape,
    SparseTensor,
    Process,
    UniquePassProcess,
    TwoPassProcess,
    Analysis,
    UniquePassAnalysis,
    NoPassAnalysis,
    Output,
)
from .data import Input, TensorListInput, NumpyInput, DatasetInput
from .execution import RunSummary, SparseIntermediateExecution
from .experiment import Experiment, build_experiment


__all__ = [
    "__version__",
    # Errors
    "SpikePipeError",
    "PipelineConfigError",
    "ShapeMismatchError",
    "SampleProcessingError",
    "DataLoadingError",
    "ExecutionCancelled",
    "InputExhaustedError",
    # Config
    "ExecutionParams",
    "LoggingParams",
    "load_config",
    # Core
    "Shape",
    "SparseTensor",
    "Process",
    "UniquePassProcess",
    "TwoPassProcess",
    "Analysis",
    "UniquePassAnalysis",
    "NoPassAnalysis",
    "Output",
    # Data
    "Input",
    "TensorListInput",
    "NumpyInput",
    "DatasetInput",
    # Execution
    "RunSummary",
    "SparseIntermediateExecution",
    "Experiment",
    "build_experiment",
]
