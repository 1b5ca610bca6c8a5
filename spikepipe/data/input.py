"""
Data Inputs.

An ``Input`` is a cursor over labeled dense samples. The loader pulls from it
with ``has_next()`` / ``next()`` and closes it once exhausted.

Inputs provided here:
    - TensorListInput: in-memory ``(label, tensor)`` pairs
    - NumpyInput: ``.npy`` / ``.npz`` files, one class per sub-directory
    - DatasetInput: any ``torch.utils.data.Dataset`` yielding ``(tensor, label)``

Every input advances its cursor before decoding an entry, so a corrupt
entry raises once and the next call moves on to the following entry.

Example:
    >>> from spikepipe.data.input import NumpyInput
    >>>
    >>> # data/train/cat/0001.npy, data/train/dog/0002.npy, ...
    >>> train = NumpyInput("data/train")
    >>> while train.has_next():
    ...     label, tensor = train.next()
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

import numpy as np

import torch
from torch.utils.data import Dataset

from ..core.tensor import Shape
from ..errors import DataLoadingError, InputExhaustedError


logger = logging.getLogger(__name__)


# =============================================================================
# HELPERS
# =============================================================================


def to_sample_tensor(array: Union[np.ndarray, torch.Tensor]) -> torch.Tensor:
    """
    Convert an array to a float32 ``(height, width, depth, channels)`` tensor.

    2-D arrays become ``(h, w, 1, 1)``, 3-D arrays ``(h, w, d, 1)``.

    Raises:
        ValueError: If the array has more than 4 dimensions.
    """
    tensor = torch.as_tensor(array, dtype=torch.float32)
    if tensor.dim() > 4:
        raise ValueError(f"Samples must have at most 4 dimensions, got {tensor.dim()}")
    while tensor.dim() < 4:
        tensor = tensor.unsqueeze(-1)
    return tensor.contiguous()


# =============================================================================
# INPUT INTERFACE
# =============================================================================


class Input(ABC):
    """Cursor over ``(label, tensor)`` entries."""

    @property
    @abstractmethod
    def shape(self) -> Shape:
        """Shape of the samples this input produces."""

    @abstractmethod
    def has_next(self) -> bool:
        pass

    @abstractmethod
    def next(self) -> Tuple[str, torch.Tensor]:
        """
        Return the next entry.

        Raises:
            InputExhaustedError: If called after has_next() returned False.
        """

    @abstractmethod
    def reset(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __iter__(self):
        while self.has_next():
            yield self.next()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} shape={self.shape}>"


class _IndexedInput(Input):
    """Input backed by random access to ``size`` entries."""

    def __init__(self) -> None:
        self._cursor = 0

    @property
    @abstractmethod
    def size(self) -> int:
        pass

    @abstractmethod
    def _read(self, index: int) -> Tuple[str, torch.Tensor]:
        pass

    def has_next(self) -> bool:
        return self._cursor < self.size

    def next(self) -> Tuple[str, torch.Tensor]:
        if not self.has_next():
            raise InputExhaustedError(
                f"{type(self).__name__} exhausted after {self.size} entries"
            )
        index = self._cursor
        self._cursor += 1
        return self._read(index)

    def reset(self) -> None:
        self._cursor = 0

    def _first_readable_shape(self) -> Shape:
        """
        Shape of the first entry that decodes.

        Undecodable entries are logged and skipped here; the loader still
        counts them as failures when it reaches them.

        Raises:
            DataLoadingError: If no entry decodes.
        """
        for index in range(self.size):
            try:
                _, tensor = self._read(index)
            except Exception as e:
                logger.warning(f"{type(self).__name__}: skipping entry {index} for shape: {e}")
                continue
            return Shape.of(tensor)
        raise DataLoadingError(
            f"{type(self).__name__}: none of {self.size} entries could be decoded"
        )


# =============================================================================
# IN-MEMORY INPUT
# =============================================================================


class TensorListInput(_IndexedInput):
    """
    In-memory input.

    Example:
        >>> inp = TensorListInput([("cat", torch.ones(4, 4, 1, 1))])
        >>> inp.next()[0]
        'cat'
    """

    def __init__(
        self,
        entries: Sequence[Tuple[str, Union[np.ndarray, torch.Tensor]]],
        shape: Optional[Sequence[int]] = None,
    ) -> None:
        super().__init__()
        self._entries = list(entries)
        if shape is not None:
            self._shape = Shape.from_sequence(shape)
        elif self._entries:
            self._shape = Shape.of(to_sample_tensor(self._entries[0][1]))
        else:
            raise ValueError("shape is required for an empty TensorListInput")

    @property
    def shape(self) -> Shape:
        return self._shape

    @property
    def size(self) -> int:
        return len(self._entries)

    def _read(self, index: int) -> Tuple[str, torch.Tensor]:
        label, value = self._entries[index]
        # Copy so that in-place stage mutations never reach the caller's tensors
        return str(label), to_sample_tensor(value).clone()


# =============================================================================
# NUMPY FILE INPUT
# =============================================================================


class NumpyInput(_IndexedInput):
    """
    Samples stored as ``.npy`` or ``.npz`` files.

    Layout::

        root/
            <label>/
                sample_000.npy
                sample_001.npz      # first array in the archive, or ``key``

    Files are read lazily, sorted by label then file name.

    Args:
        root: Directory holding one sub-directory per label.
        key: Array name to read from ``.npz`` archives. Default: first array.

    Raises:
        DataLoadingError: If ``root`` does not exist or holds no samples.
    """

    EXTENSIONS = (".npy", ".npz")

    def __init__(self, root: Union[str, Path], key: Optional[str] = None) -> None:
        super().__init__()
        self.root = Path(root)
        self.key = key

        if not self.root.is_dir():
            raise DataLoadingError(f"Data directory not found: {self.root}")

        self._files: List[Tuple[str, Path]] = [
            (label_dir.name, path)
            for label_dir in sorted(p for p in self.root.iterdir() if p.is_dir())
            for path in sorted(label_dir.iterdir())
            if path.suffix in self.EXTENSIONS
        ]
        if not self._files:
            raise DataLoadingError(f"No {'/'.join(self.EXTENSIONS)} samples under {self.root}")

        self._shape: Optional[Shape] = None

    @property
    def shape(self) -> Shape:
        if self._shape is None:
            self._shape = self._first_readable_shape()
        return self._shape

    @property
    def size(self) -> int:
        return len(self._files)

    def _load(self, path: Path) -> np.ndarray:
        if path.suffix == ".npz":
            with np.load(path) as archive:
                key = self.key if self.key is not None else archive.files[0]
                return archive[key]
        return np.load(path)

    def _read(self, index: int) -> Tuple[str, torch.Tensor]:
        label, path = self._files[index]
        return label, to_sample_tensor(self._load(path))

    def __repr__(self) -> str:
        return f"<NumpyInput root={str(self.root)!r} files={len(self._files)}>"


# =============================================================================
# TORCH DATASET INPUT
# =============================================================================


class DatasetInput(_IndexedInput):
    """
    Adapter for a ``torch.utils.data.Dataset`` returning ``(tensor, label)``.

    Args:
        dataset: Map-style dataset.
        label_names: Optional mapping from integer labels to names.
    """

    def __init__(self, dataset: Dataset, label_names: Optional[Sequence[str]] = None) -> None:
        super().__init__()
        self.dataset = dataset
        self.label_names = list(label_names) if label_names is not None else None
        self._shape: Optional[Shape] = None

    @property
    def shape(self) -> Shape:
        if self._shape is None:
            self._shape = self._first_readable_shape()
        return self._shape

    @property
    def size(self) -> int:
        return len(self.dataset)

    def _label(self, label: Any) -> str:
        if isinstance(label, torch.Tensor):
            label = label.item()
        if self.label_names is not None and isinstance(label, int):
            return self.label_names[label]
        return str(label)

    def _read(self, index: int) -> Tuple[str, torch.Tensor]:
        value, label = self.dataset[index]
        return self._label(label), to_sample_tensor(value)


__all__ = [
    "to_sample_tensor",
    "Input",
    "TensorListInput",
    "NumpyInput",
    "DatasetInput",
]
