"""
Functional Operations on Samples.

Stateless tensor operations used by the concrete stages. Samples are laid out
``(height, width, depth, channels)``. Torch kernels expect
``(batch, channels, height, width)``, so depth (frames) plays the role of the
batch dimension when calling them.

Contents:
    - Layout conversion between sample and NCHW layouts
    - Filter creation (Gaussian, DoG)
    - Sum pooling to a target size (spatial and temporal)
    - Temporal encoding (intensity to spike timestamp)

Paper References:
    - Kheradpisheh et al. 2018: DoG filters, rank-order coding
"""

from __future__ import annotations

import math
from typing import List, Tuple

import torch
import torch.nn.functional as F


# =============================================================================
# VALIDATION HELPERS
# =============================================================================


def _validate_tensor(tensor: torch.Tensor, name: str) -> None:
    """Validate that input is a torch.Tensor."""
    if not isinstance(tensor, torch.Tensor):
        raise TypeError(f"{name} must be a torch.Tensor, got {type(tensor).__name__}")


def _validate_positive_float(value: float, name: str) -> None:
    """Validate that a value is a positive number."""
    if not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number, got {type(value).__name__}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")


def _validate_positive_int(value: int, name: str) -> None:
    """Validate that a value is a positive integer."""
    if not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")


def _validate_sample(tensor: torch.Tensor, name: str = "sample") -> None:
    """Validate that a tensor is a 4-D sample."""
    _validate_tensor(tensor, name)
    if tensor.dim() != 4:
        raise ValueError(
            f"{name} must be 4D (height, width, depth, channels), "
            f"got {tensor.dim()}D with shape {tuple(tensor.shape)}"
        )


# =============================================================================
# LAYOUT
# =============================================================================


def to_nchw(sample: torch.Tensor) -> torch.Tensor:
    """(height, width, depth, channels) -> (depth, channels, height, width)"""
    _validate_sample(sample)
    return sample.permute(2, 3, 0, 1)


def from_nchw(x: torch.Tensor) -> torch.Tensor:
    """(depth, channels, height, width) -> (height, width, depth, channels)"""
    return x.permute(2, 3, 0, 1).contiguous()


# =============================================================================
# FILTER CREATION (Gaussian, DoG)
# =============================================================================


def create_gaussian_kernel(
    size: int,
    sigma: float,
    normalize: bool = True
) -> torch.Tensor:
    """
    Create a 2D Gaussian kernel.

    Args:
        size: Kernel size (must be positive, typically odd for symmetry).
        sigma: Standard deviation of Gaussian (must be positive).
        normalize: If True, kernel sums to 1.

    Returns:
        Gaussian kernel. Shape: (size, size)
    """
    _validate_positive_int(size, "size")
    _validate_positive_float(sigma, "sigma")

    x = torch.arange(size, dtype=torch.float32) - (size - 1) / 2
    xx, yy = torch.meshgrid(x, x, indexing='ij')

    kernel = torch.exp(-(xx**2 + yy**2) / (2 * sigma**2))

    if normalize:
        kernel = kernel / kernel.sum()

    return kernel


def create_dog_filters(
    size: int = 7,
    sigma_center: float = 1.0,
    sigma_surround: float = 4.0
) -> torch.Tensor:
    """
    Create Difference of Gaussians (DoG) filters for ON/OFF channels.

    ON-center: responds to bright center, dark surround (center - surround)
    OFF-center: responds to dark center, bright surround (surround - center)

    Args:
        size: Kernel size.
        sigma_center: Std of center Gaussian.
        sigma_surround: Std of surround Gaussian.

    Returns:
        DoG filters. Shape: (2, 1, size, size)
        - Channel 0: ON-center
        - Channel 1: OFF-center
    """
    if sigma_surround <= sigma_center:
        raise ValueError(
            f"sigma_surround ({sigma_surround}) must be > sigma_center ({sigma_center})"
        )

    center = create_gaussian_kernel(size, sigma_center, normalize=True)
    surround = create_gaussian_kernel(size, sigma_surround, normalize=True)

    on_center = center - surround
    off_center = surround - center

    return torch.stack([on_center, off_center], dim=0).unsqueeze(1)


# =============================================================================
# POOLING
# =============================================================================


def region_sizes(size: int, out: int) -> List[int]:
    """
    Extent of each region ``adaptive_avg_pool`` uses to reduce ``size`` to ``out``.

    Region ``i`` spans ``[floor(i*size/out), ceil((i+1)*size/out))``.
    """
    return [
        math.ceil((i + 1) * size / out) - (i * size) // out
        for i in range(out)
    ]


def sum_pool2d(x: torch.Tensor, output_size: Tuple[int, int]) -> torch.Tensor:
    """
    Sum pooling of an NCHW tensor to ``output_size`` regions.

    Args:
        x: Input. Shape: (N, C, H, W)
        output_size: (out_height, out_width), each no larger than the input.

    Returns:
        Region sums. Shape: (N, C, out_height, out_width)
    """
    out_h, out_w = output_size
    h, w = x.shape[-2:]
    if not (0 < out_h <= h and 0 < out_w <= w):
        raise ValueError(f"Cannot sum-pool {h}x{w} into {out_h}x{out_w}")

    rows = torch.tensor(region_sizes(h, out_h), dtype=x.dtype, device=x.device)
    cols = torch.tensor(region_sizes(w, out_w), dtype=x.dtype, device=x.device)
    counts = rows.unsqueeze(1) * cols.unsqueeze(0)

    return F.adaptive_avg_pool2d(x, (out_h, out_w)) * counts


def sum_pool1d(x: torch.Tensor, output_size: int) -> torch.Tensor:
    """
    Sum pooling along the last dimension.

    Args:
        x: Input. Shape: (N, C, L)
        output_size: Number of regions, no larger than L.

    Returns:
        Region sums. Shape: (N, C, output_size)
    """
    length = x.shape[-1]
    if not 0 < output_size <= length:
        raise ValueError(f"Cannot sum-pool length {length} into {output_size}")

    counts = torch.tensor(region_sizes(length, output_size), dtype=x.dtype, device=x.device)
    return F.adaptive_avg_pool1d(x, output_size) * counts


# =============================================================================
# TEMPORAL ENCODING
# =============================================================================


def intensity_to_latency(
    intensity: torch.Tensor,
    max_time: float = 1.0,
    epsilon: float = 1e-3
) -> torch.Tensor:
    """
    Convert intensities in [0, 1] to spike timestamps.

    Higher intensity → earlier spike. A zero (or negative) intensity does not
    spike and keeps timestamp 0, so silent coordinates stay implicit in
    sparse storage.

    Formula: t = max_time * max(1 - intensity, epsilon)  for intensity > 0

    Args:
        intensity: Input intensity values (typically 0 to 1).
        max_time: Timestamp of the weakest spike (must be positive).
        epsilon: Earliest timestamp as a fraction of max_time (must be positive).

    Returns:
        Spike timestamps in [epsilon * max_time, max_time], 0 for silence.
        Same shape as input.

    Example:
        >>> intensity_to_latency(torch.tensor([0.0, 0.5, 1.0]))
        tensor([0.0000, 0.5000, 0.0010])
    """
    _validate_tensor(intensity, "intensity")
    _validate_positive_float(max_time, "max_time")
    _validate_positive_float(epsilon, "epsilon")

    intensity = torch.clamp(intensity, max=1.0)
    latency = max_time * torch.clamp(1.0 - intensity, min=epsilon)

    return torch.where(intensity > 0, latency, torch.zeros_like(latency))


__all__ = [
    "to_nchw",
    "from_nchw",
    "create_gaussian_kernel",
    "create_dog_filters",
    "region_sizes",
    "sum_pool2d",
    "sum_pool1d",
    "intensity_to_latency",
]
