"""
Feature filters.

    - DefaultOnOffFilter: DoG center-surround filtering into ON/OFF channels
    - SeparateSign: split positive and negative values into separate channels
    - LatencyCoding: intensities to spike timestamps
"""

from __future__ import annotations

import torch
import torch.nn.functional as F

from ..core.functional import create_dog_filters, from_nchw, intensity_to_latency, to_nchw
from ..core.process import UniquePassProcess
from ..core.tensor import Shape
from ..registry import PROCESSES


@PROCESSES.register("DefaultOnOffFilter")
class DefaultOnOffFilter(UniquePassProcess):
    """
    ON/OFF Difference-of-Gaussians filtering.

    Every channel of every frame is convolved with an ON-center DoG kernel.
    The positive part of the response goes to an ON channel, the negative
    part to an OFF channel, so the channel count doubles: input channel ``c``
    becomes output channels ``2c`` (ON) and ``2c + 1`` (OFF).

    Paper Reference:
        Kheradpisheh et al. 2018: "The first layer performs DoG filtering"

    Args:
        size: Kernel size (odd).
        sigma_center: Std of the center Gaussian.
        sigma_surround: Std of the surround Gaussian.
    """

    def __init__(
        self,
        size: int = 7,
        sigma_center: float = 1.0,
        sigma_surround: float = 4.0,
        name: str = "",
    ) -> None:
        super().__init__(name)
        if size % 2 == 0:
            raise ValueError(f"size must be odd, got {size}")
        self.size = size
        self.sigma_center = sigma_center
        self.sigma_surround = sigma_surround
        self.kernel = create_dog_filters(size, sigma_center, sigma_surround)[:1]

    def compute_shape(self, shape: Shape) -> Shape:
        return Shape(shape.height, shape.width, shape.depth, shape.channels * 2)

    def _process(self, sample: torch.Tensor) -> torch.Tensor:
        h, w, d, c = sample.shape
        frames = to_nchw(sample).reshape(d * c, 1, h, w)
        response = F.conv2d(frames, self.kernel.to(sample.dtype), padding=self.size // 2)

        on_off = torch.cat([F.relu(response), F.relu(-response)], dim=1)
        return from_nchw(on_off.reshape(d, c * 2, h, w))

    def process_train(self, label, sample):
        return self._process(sample)

    def process_test(self, label, sample):
        return self._process(sample)


@PROCESSES.register("SeparateSign")
class SeparateSign(UniquePassProcess):
    """Channels ``[0, C)`` hold ``max(x, 0)``, channels ``[C, 2C)`` hold ``max(-x, 0)``."""

    def compute_shape(self, shape: Shape) -> Shape:
        return Shape(shape.height, shape.width, shape.depth, shape.channels * 2)

    def _process(self, sample: torch.Tensor) -> torch.Tensor:
        return torch.cat([F.relu(sample), F.relu(-sample)], dim=3)

    def process_train(self, label, sample):
        return self._process(sample)

    def process_test(self, label, sample):
        return self._process(sample)


@PROCESSES.register("LatencyCoding")
class LatencyCoding(UniquePassProcess):
    """
    Rank-order coding: strong intensities spike first.

    Expects values in [0, 1] (see MaxScaling). Output holds spike timestamps
    in ``(0, max_time]``, 0 where nothing spikes.
    """

    def __init__(self, max_time: float = 1.0, name: str = "") -> None:
        super().__init__(name)
        self.max_time = max_time

    def compute_shape(self, shape: Shape) -> Shape:
        return shape

    def _process(self, sample: torch.Tensor) -> None:
        sample.copy_(intensity_to_latency(sample, max_time=self.max_time))

    def process_train(self, label, sample):
        self._process(sample)

    def process_test(self, label, sample):
        self._process(sample)


__all__ = [
    "DefaultOnOffFilter",
    "SeparateSign",
    "LatencyCoding",
]
