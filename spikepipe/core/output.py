"""
Output Taps.

An output tap forks the pipeline after a given stage. When that stage has
finished both its train and test passes, the engine snapshots the current
store, runs every sample through the tap's converter, replays the snapshot
through the tap's own post-processing stages and feeds the result to the
tap's analyses. The main store is never touched.

Converters:
    - DefaultOutput: identity
    - ScaledOutput: multiply by a constant
    - TimeObjectiveOutput: spike timestamps to activations
    - FunctionOutput: wrap any ``tensor -> tensor`` callable

Example:
    >>> tap = Output("conv1_out", index=3, converter=TimeObjectiveOutput(0.65))
    >>> tap.add_postprocessing(SumPooling(4, 4))
    >>> tap.add_analysis(Activity())
"""

from __future__ import annotations

from typing import Callable, List, Optional

import torch

from ..registry import CONVERTERS
from .analysis import Analysis
from .process import Process
from .tensor import Shape


# =============================================================================
# CONVERTERS
# =============================================================================


class OutputConverter:
    """Transform applied to every sample entering a tap."""

    @classmethod
    def class_name(cls) -> str:
        return cls.__name__

    def compute_shape(self, shape: Shape) -> Shape:
        return shape

    def process(self, sample: torch.Tensor) -> torch.Tensor:
        return sample

    def __call__(self, sample: torch.Tensor) -> torch.Tensor:
        return self.process(sample)


class DefaultOutput(OutputConverter):
    """Pass samples through unchanged."""
    pass


class ScaledOutput(OutputConverter):
    """Multiply every value by ``factor``."""

    def __init__(self, factor: float) -> None:
        self.factor = float(factor)

    def process(self, sample: torch.Tensor) -> torch.Tensor:
        return sample * self.factor


class TimeObjectiveOutput(OutputConverter):
    """
    Turn spike timestamps into activations.

    Samples hold spike times in ``(0, 1]`` with 0 meaning "no spike". A spike
    at time ``t`` before the objective ``t_obj`` becomes ``1 - t / t_obj``,
    so early spikes give strong activations. Later spikes and silence give 0.
    """

    def __init__(self, t_obj: float = 1.0) -> None:
        if t_obj <= 0:
            raise ValueError(f"t_obj must be positive, got {t_obj}")
        self.t_obj = float(t_obj)

    def process(self, sample: torch.Tensor) -> torch.Tensor:
        fired = (sample > 0) & (sample < self.t_obj)
        return torch.where(fired, 1.0 - sample / self.t_obj, torch.zeros_like(sample))


class FunctionOutput(OutputConverter):
    """Adapter for a plain callable, with an optional shape function."""

    def __init__(
        self,
        fn: Callable[[torch.Tensor], torch.Tensor],
        shape_fn: Optional[Callable[[Shape], Shape]] = None,
    ) -> None:
        self.fn = fn
        self.shape_fn = shape_fn

    def compute_shape(self, shape: Shape) -> Shape:
        return self.shape_fn(shape) if self.shape_fn is not None else shape

    def process(self, sample: torch.Tensor) -> torch.Tensor:
        return self.fn(sample)


def as_converter(converter) -> OutputConverter:
    """Accept an OutputConverter, a callable or None (identity)."""
    if converter is None:
        return DefaultOutput()
    if isinstance(converter, OutputConverter):
        return converter
    if callable(converter):
        return FunctionOutput(converter)
    raise TypeError(
        f"converter must be an OutputConverter or callable, got {type(converter).__name__}"
    )


# =============================================================================
# OUTPUT TAP
# =============================================================================


class Output:
    """
    A named fork point bound to a pipeline stage index.

    Attributes:
        name: Tap name used in logs.
        index: Index of the stage whose output this tap reads.
        converter: Applied to every snapshot sample.
        postprocessing: Stages run on the tap-local partitions, in order.
        analysis: Analyses fed with the post-processed partitions, in order.
    """

    def __init__(
        self,
        name: str,
        index: int,
        converter=None,
        postprocessing: Optional[List[Process]] = None,
        analysis: Optional[List[Analysis]] = None,
    ) -> None:
        if index < 0:
            raise ValueError(f"index must be non-negative, got {index}")
        self.name = name
        self.index = index
        self.converter = as_converter(converter)
        self.postprocessing: List[Process] = list(postprocessing or [])
        self.analysis: List[Analysis] = list(analysis or [])

    def add_postprocessing(self, process: Process) -> Process:
        self.postprocessing.append(process)
        return process

    def add_analysis(self, analysis: Analysis) -> Analysis:
        self.analysis.append(analysis)
        return analysis

    def resize(self, shape: Shape) -> Shape:
        """Resolve converter and post-processing shapes from the bound stage shape."""
        current = Shape.from_sequence(self.converter.compute_shape(shape))
        for i, process in enumerate(self.postprocessing):
            process.index = i
            current = process.resize(current)
        return current

    def __repr__(self) -> str:
        return (
            f"<Output {self.name!r} index={self.index} "
            f"converter={self.converter.class_name()} "
            f"postprocessing={len(self.postprocessing)} analysis={len(self.analysis)}>"
        )


for _converter in (DefaultOutput, ScaledOutput, TimeObjectiveOutput):
    CONVERTERS.add(_converter.__name__, _converter)


__all__ = [
    "OutputConverter",
    "DefaultOutput",
    "ScaledOutput",
    "TimeObjectiveOutput",
    "FunctionOutput",
    "as_converter",
    "Output",
]
