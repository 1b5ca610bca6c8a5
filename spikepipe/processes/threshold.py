"""
Adaptive threshold stage (homeostasis).

Binarises activity with one firing threshold per channel. During training
each threshold moves towards the value that makes its channel fire at
``target_rate``::

    rate_c   = fraction of coordinates of channel c at or above θ_c
    θ_c     += lr · (rate_c - target_rate)

The adaptation rate is annealed after every full pass, so thresholds settle
as passes go by. Updates depend on the order samples are seen in, which is
why training passes run sequentially.

Paper Reference:
    Diehl & Cook 2015 / Lee et al. 2018: adaptive thresholds keep any single
    feature map from dominating.
"""

from __future__ import annotations

from typing import Optional

import torch

from ..core.process import Process
from ..core.tensor import Shape
from ..registry import PROCESSES


@PROCESSES.register("AdaptiveThreshold")
class AdaptiveThreshold(Process):
    """
    Per-channel learned firing thresholds.

    Args:
        passes: Number of training passes.
        target_rate: Desired fraction of active coordinates per channel.
        lr: Initial threshold adaptation rate.
        annealing: Factor applied to ``lr`` after each pass.
        initial_threshold: Starting threshold of every channel.
        min_threshold: Lower bound, keeps silent coordinates silent.
    """

    def __init__(
        self,
        passes: int = 3,
        target_rate: float = 0.1,
        lr: float = 0.05,
        annealing: float = 0.9,
        initial_threshold: float = 0.5,
        min_threshold: float = 1e-3,
        name: str = "",
    ) -> None:
        super().__init__(name)
        if passes < 1:
            raise ValueError(f"passes must be >= 1, got {passes}")
        if not 0.0 < target_rate < 1.0:
            raise ValueError(f"target_rate must be in (0, 1), got {target_rate}")
        if min_threshold <= 0:
            raise ValueError(f"min_threshold must be positive, got {min_threshold}")
        self.passes = passes
        self.target_rate = target_rate
        self.lr = lr
        self.annealing = annealing
        self.initial_threshold = max(initial_threshold, min_threshold)
        self.min_threshold = min_threshold

        self.thresholds: Optional[torch.Tensor] = None
        self.current_lr = lr

    def compute_shape(self, shape: Shape) -> Shape:
        self.thresholds = torch.full((shape.channels,), self.initial_threshold)
        self.current_lr = self.lr
        return shape

    def train_pass_number(self) -> int:
        return self.passes

    def _fire(self, sample: torch.Tensor) -> torch.Tensor:
        return (sample >= self.thresholds.to(sample.dtype)).to(sample.dtype)

    def process_train_sample(self, label, sample, pass_index, sample_index, partition_size):
        if pass_index == 0 and sample_index == 0:
            self.current_lr = self.lr

        spikes = self._fire(sample)
        if spikes.numel():
            rate = spikes.mean(dim=(0, 1, 2))
            self.thresholds += self.current_lr * (rate - self.target_rate)
            self.thresholds.clamp_(min=self.min_threshold)

        if sample_index == partition_size - 1:
            self.current_lr *= self.annealing

        # Earlier passes keep the analog values for the next pass to adapt on
        if pass_index == self.passes - 1:
            sample.copy_(spikes)

    def process_test_sample(self, label, sample, sample_index, partition_size):
        sample.copy_(self._fire(sample))


__all__ = [
    "AdaptiveThreshold",
]
