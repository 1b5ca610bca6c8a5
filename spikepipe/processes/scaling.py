"""
Scaling stages.

    - MaxScaling: each sample divided by its own maximum
    - FeatureScaling: per-channel min/max learned on the train partition
"""

from __future__ import annotations

from typing import Optional

import torch

from ..core.process import TwoPassProcess, UniquePassProcess
from ..core.tensor import Shape
from ..registry import PROCESSES


@PROCESSES.register("MaxScaling")
class MaxScaling(UniquePassProcess):
    """Scale every sample into [0, 1] by its maximum value."""

    def compute_shape(self, shape: Shape) -> Shape:
        return shape

    def _process(self, sample: torch.Tensor) -> None:
        peak = sample.max() if sample.numel() else None
        if peak is not None and peak > 0:
            sample.div_(peak)

    def process_train(self, label, sample):
        self._process(sample)

    def process_test(self, label, sample):
        self._process(sample)


@PROCESSES.register("FeatureScaling")
class FeatureScaling(TwoPassProcess):
    """
    Min-max normalisation per channel.

    Pass 0 records the per-channel minimum and maximum over the whole train
    partition. Pass 1 and the test pass map ``[min, max]`` to ``[0, 1]``;
    test values outside the training range are clamped.
    """

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self._min: Optional[torch.Tensor] = None
        self._max: Optional[torch.Tensor] = None
        self._fitted = False

    def compute_shape(self, shape: Shape) -> Shape:
        return shape

    def reset(self) -> None:
        self._min = None
        self._max = None
        self._fitted = False

    def compute(self, label, sample):
        flat = sample.reshape(-1, sample.shape[-1])
        if flat.shape[0] == 0:
            return
        lo = flat.min(dim=0).values
        hi = flat.max(dim=0).values
        if self._min is None:
            self._min, self._max = lo.clone(), hi.clone()
        else:
            torch.minimum(self._min, lo, out=self._min)
            torch.maximum(self._max, hi, out=self._max)

    def finalize(self) -> None:
        self._fitted = self._min is not None

    def process(self, label, sample):
        if not self._fitted:
            return None
        span = self._max - self._min
        span = torch.where(span > 0, span, torch.ones_like(span))
        sample.sub_(self._min).div_(span).clamp_(0.0, 1.0)
        return None


__all__ = [
    "MaxScaling",
    "FeatureScaling",
]
