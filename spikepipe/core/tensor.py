"""
Dense / Sparse Tensor Storage.

Samples travel through the pipeline as dense 4-D ``torch.Tensor`` objects
laid out as ``(height, width, depth, channels)``. Between stages they are
stored compressed: only the coordinates whose value differs from a declared
default (usually 0) are kept, together with the original shape.

Most activations in a spiking pipeline are zero, so storage stays small
while every stage kernel keeps working on plain dense tensors.

Contents:
    - Shape: immutable 4-tuple of extents
    - SparseTensor: coordinate/value storage of a dense tensor
    - to_sparse / from_sparse: lossless conversion in both directions
    - BufferArena: reusable dense scratch buffers for per-sample decompression

Example:
    >>> import torch
    >>> from spikepipe.core.tensor import to_sparse, from_sparse
    >>>
    >>> dense = torch.zeros(4, 4, 1, 1)
    >>> dense[1, 2, 0, 0] = 0.5
    >>> sparse = to_sparse(dense)
    >>> sparse.nnz
    1
    >>> torch.equal(from_sparse(sparse), dense)
    True
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, NamedTuple, Optional, Tuple

import torch


# =============================================================================
# VALIDATION HELPERS
# =============================================================================


def _validate_tensor(tensor: torch.Tensor, name: str) -> None:
    """Validate that input is a torch.Tensor."""
    if not isinstance(tensor, torch.Tensor):
        raise TypeError(f"{name} must be a torch.Tensor, got {type(tensor).__name__}")


def _validate_4d_tensor(tensor: torch.Tensor, name: str) -> None:
    """Validate that a tensor is 4-dimensional (height, width, depth, channels)."""
    _validate_tensor(tensor, name)
    if tensor.dim() != 4:
        raise ValueError(
            f"{name} must be 4D (height, width, depth, channels), "
            f"got {tensor.dim()}D with shape {tuple(tensor.shape)}"
        )


# =============================================================================
# SHAPE
# =============================================================================


class Shape(NamedTuple):
    """
    Extents of a sample: ``(height, width, depth, channels)``.

    Two shapes are equal iff all four extents match. Comparison with a plain
    4-tuple works as well.
    """
    height: int
    width: int
    depth: int
    channels: int

    @classmethod
    def of(cls, tensor: torch.Tensor) -> "Shape":
        """Shape of a dense 4-D tensor."""
        _validate_4d_tensor(tensor, "tensor")
        return cls(*(int(d) for d in tensor.shape))

    @classmethod
    def from_sequence(cls, dims: Iterable[int]) -> "Shape":
        """
        Build a Shape from any sequence of four non-negative integers.

        Raises:
            ValueError: If the sequence does not hold exactly four
                non-negative extents.
        """
        dims = tuple(int(d) for d in dims)
        if len(dims) != 4:
            raise ValueError(f"Shape needs 4 extents, got {len(dims)}: {dims}")
        if any(d < 0 for d in dims):
            raise ValueError(f"Shape extents must be non-negative, got {dims}")
        return cls(*dims)

    def dim(self, axis: int) -> int:
        return self[axis]

    def numel(self) -> int:
        """Number of elements of a dense tensor with this shape."""
        n = 1
        for d in self:
            n *= d
        return n

    def to_string(self) -> str:
        return "(" + ", ".join(str(d) for d in self) + ")"


# =============================================================================
# SPARSE TENSOR
# =============================================================================


@dataclass
class SparseTensor:
    """
    Compressed storage of a dense tensor.

    Attributes:
        shape: Shape of the dense tensor.
        indices: Coordinates of stored elements. Shape: (nnz, 4), int64,
            in row-major order of the dense tensor.
        values: Stored values, aligned with ``indices``. Shape: (nnz,)
        default: Value of every coordinate not listed in ``indices``.
        dtype: dtype of the dense tensor.
    """
    shape: Shape
    indices: torch.Tensor
    values: torch.Tensor
    default: float = 0.0
    dtype: torch.dtype = torch.float32

    def __post_init__(self) -> None:
        if not isinstance(self.shape, Shape):
            self.shape = Shape.from_sequence(self.shape)
        if self.indices.dim() != 2 or self.indices.shape[1] != 4:
            raise ValueError(
                f"indices must have shape (nnz, 4), got {tuple(self.indices.shape)}"
            )
        if self.indices.shape[0] != self.values.shape[0]:
            raise ValueError(
                f"indices ({self.indices.shape[0]}) and values "
                f"({self.values.shape[0]}) must have the same length"
            )

    @property
    def nnz(self) -> int:
        """Number of stored (non-default) elements."""
        return int(self.values.shape[0])

    def density(self) -> float:
        """Fraction of coordinates stored explicitly."""
        total = self.shape.numel()
        return self.nnz / total if total else 0.0

    def copy(self) -> "SparseTensor":
        return SparseTensor(
            self.shape,
            self.indices.clone(),
            self.values.clone(),
            self.default,
            self.dtype,
        )

    def to_dense(self) -> torch.Tensor:
        return from_sparse(self)

    def to_coo(self) -> torch.Tensor:
        """
        Convert to a ``torch.sparse_coo_tensor``.

        Only valid for a zero default, which is what torch sparse assumes.
        """
        if self.default != 0.0:
            raise ValueError(
                f"to_coo() requires a zero default, got {self.default}"
            )
        return torch.sparse_coo_tensor(
            self.indices.t(), self.values, size=tuple(self.shape), dtype=self.dtype
        ).coalesce()

    def equals(self, other: "SparseTensor") -> bool:
        """True if both hold the same shape and the same dense values."""
        if self.shape != other.shape:
            return False
        return torch.equal(from_sparse(self), from_sparse(other))


# =============================================================================
# CONVERSION
# =============================================================================


def to_sparse(tensor: torch.Tensor, default: float = 0.0) -> SparseTensor:
    """
    Compress a dense tensor.

    Every element that differs from ``default`` is stored as a
    (coordinate, value) pair. For floating tensors a zero whose sign differs
    from the default (``-0.0`` against ``0.0``) counts as different, so the
    round trip through ``from_sparse`` is bit-exact. Coordinates come out in row-major order, so
    the result is deterministic for a given input.

    Args:
        tensor: Dense tensor. Shape: (height, width, depth, channels)
        default: Value left implicit. Default 0.0.

    Returns:
        SparseTensor holding a copy of the non-default values.

    Raises:
        TypeError: If tensor is not a torch.Tensor.
        ValueError: If tensor is not 4-D.

    Example:
        >>> t = torch.zeros(2, 2, 1, 1)
        >>> t[0, 1, 0, 0] = 3.0
        >>> to_sparse(t).indices
        tensor([[0, 1, 0, 0]])
    """
    _validate_4d_tensor(tensor, "tensor")

    dense = tensor.detach()
    if dense.device.type != "cpu":
        dense = dense.cpu()

    mask = dense != default
    if dense.is_floating_point():
        mask |= torch.signbit(dense) != (math.copysign(1.0, default) < 0)
    indices = mask.nonzero()
    values = dense[mask]

    return SparseTensor(
        shape=Shape.of(dense),
        indices=indices,
        values=values,
        default=float(default),
        dtype=dense.dtype,
    )


def from_sparse(sparse: SparseTensor, out: Optional[torch.Tensor] = None) -> torch.Tensor:
    """
    Decompress a SparseTensor into a dense tensor.

    Args:
        sparse: Compressed tensor.
        out: Optional scratch buffer. Reused when its shape and dtype match,
            otherwise a new tensor is allocated.

    Returns:
        Dense tensor equal element-wise to the tensor ``sparse`` was built from.
    """
    if (
        out is None
        or tuple(out.shape) != tuple(sparse.shape)
        or out.dtype != sparse.dtype
    ):
        out = torch.full(tuple(sparse.shape), sparse.default, dtype=sparse.dtype)
    else:
        out.fill_(sparse.default)

    if sparse.nnz:
        out[tuple(sparse.indices.t())] = sparse.values

    return out


# =============================================================================
# SCRATCH BUFFERS
# =============================================================================


class BufferArena:
    """
    Dense scratch buffers reused across samples.

    Buffers are keyed by ``(slot, shape, dtype)``. The sequential pass loop
    uses a single slot, so decompressing N same-shaped samples allocates one
    dense tensor instead of N.

    A stage that needs to keep a sample beyond the call it receives it in
    must copy it, since the buffer is overwritten by the next sample.

    Example:
        >>> arena = BufferArena()
        >>> a = arena.materialize(to_sparse(torch.ones(2, 2, 1, 1)))
        >>> b = arena.materialize(to_sparse(torch.zeros(2, 2, 1, 1)))
        >>> a is b
        True
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._buffers: Dict[Tuple[Hashable, Shape, torch.dtype], torch.Tensor] = {}

    def materialize(self, sparse: SparseTensor, slot: Hashable = 0) -> torch.Tensor:
        """Decompress ``sparse`` into the buffer of ``slot``."""
        if not self.enabled:
            return from_sparse(sparse)

        key = (slot, sparse.shape, sparse.dtype)
        dense = from_sparse(sparse, out=self._buffers.get(key))
        self._buffers[key] = dense
        return dense

    def clear(self) -> None:
        self._buffers.clear()

    def __len__(self) -> int:
        return len(self._buffers)


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "Shape",
    "SparseTensor",
    "to_sparse",
    "from_sparse",
    "BufferArena",
]
