"""
Pooling stages.

Both stages reduce a dimension to a fixed number of regions and sum the
values inside each region. Regions follow adaptive pooling, so they overlap
when the output extent does not divide the input extent.

    - SumPooling: spatial (height, width)
    - TemporalPooling: depth (frames)
"""

from __future__ import annotations

import torch

from ..core.functional import from_nchw, sum_pool1d, sum_pool2d, to_nchw
from ..core.process import UniquePassProcess
from ..core.tensor import Shape
from ..registry import PROCESSES


@PROCESSES.register("SumPooling")
class SumPooling(UniquePassProcess):
    """
    Spatial sum pooling to ``target_height x target_width`` regions.

    Args:
        target_height: Output height, at most the input height.
        target_width: Output width, at most the input width.
    """

    def __init__(self, target_height: int, target_width: int, name: str = "") -> None:
        super().__init__(name)
        if target_height <= 0 or target_width <= 0:
            raise ValueError(
                f"targets must be positive, got {target_height}x{target_width}"
            )
        self.target_height = target_height
        self.target_width = target_width

    def compute_shape(self, shape: Shape) -> Shape:
        if self.target_height > shape.height or self.target_width > shape.width:
            raise ValueError(
                f"{self.describe()}: cannot pool {shape.height}x{shape.width} "
                f"into {self.target_height}x{self.target_width}"
            )
        return Shape(self.target_height, self.target_width, shape.depth, shape.channels)

    def _process(self, sample: torch.Tensor) -> torch.Tensor:
        pooled = sum_pool2d(to_nchw(sample), (self.target_height, self.target_width))
        return from_nchw(pooled)

    def process_train(self, label, sample):
        return self._process(sample)

    def process_test(self, label, sample):
        return self._process(sample)


@PROCESSES.register("TemporalPooling")
class TemporalPooling(UniquePassProcess):
    """
    Sum pooling along depth (time) to ``target_depth`` bins.

    Args:
        target_depth: Output depth, at most the input depth.
    """

    def __init__(self, target_depth: int, name: str = "") -> None:
        super().__init__(name)
        if target_depth <= 0:
            raise ValueError(f"target_depth must be positive, got {target_depth}")
        self.target_depth = target_depth

    def compute_shape(self, shape: Shape) -> Shape:
        if self.target_depth > shape.depth:
            raise ValueError(
                f"{self.describe()}: cannot pool depth {shape.depth} into {self.target_depth}"
            )
        return Shape(shape.height, shape.width, self.target_depth, shape.channels)

    def _process(self, sample: torch.Tensor) -> torch.Tensor:
        h, w, d, c = sample.shape
        # (h, w, d, c) -> (h*w*c, 1, d)
        series = sample.permute(0, 1, 3, 2).reshape(-1, 1, d)
        pooled = sum_pool1d(series, self.target_depth)
        return pooled.reshape(h, w, c, self.target_depth).permute(0, 1, 3, 2).contiguous()

    def process_train(self, label, sample):
        return self._process(sample)

    def process_test(self, label, sample):
        return self._process(sample)


__all__ = [
    "SumPooling",
    "TemporalPooling",
]
