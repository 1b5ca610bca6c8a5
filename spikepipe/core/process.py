"""
Pipeline Stages.

A stage (``Process``) transforms samples one at a time. The engine hands it
a dense tensor, the stage mutates it in place (returning ``None``) or returns
a replacement tensor, and the engine compresses the result back into the
store.

Every stage declares a shape contract: ``compute_shape`` maps the incoming
sample shape to the shape it promises to produce. The contract is resolved
once at configuration time (``resize``) and checked by the engine while
running.

Base classes:
    - Process: full capability set (multi-pass training, test pass)
    - UniquePassProcess: a single training pass, same hook for every sample
    - TwoPassProcess: pass 0 observes the train partition, pass 1 applies

Example:
    >>> class Double(UniquePassProcess):
    ...     def compute_shape(self, shape):
    ...         return shape
    ...     def process_train(self, label, sample):
    ...         sample.mul_(2)
    ...     def process_test(self, label, sample):
    ...         sample.mul_(2)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import torch

from ..errors import PipelineConfigError
from .tensor import Shape


class Process(ABC):
    """
    Abstract pipeline stage.

    Subclasses implement ``compute_shape``, ``process_train_sample`` and
    ``process_test_sample``, and override ``train_pass_number`` when they
    need more than one pass over the train partition.
    """

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._shape: Optional[Shape] = None
        self.index: Optional[int] = None

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    def set_name(self, name: str) -> "Process":
        self._name = name
        return self

    @classmethod
    def class_name(cls) -> str:
        return cls.__name__

    def describe(self) -> str:
        """``ClassName (name)`` or just the class name when unnamed."""
        if self._name:
            return f"{self.class_name()} ({self._name})"
        return self.class_name()

    # -------------------------------------------------------------------------
    # Shape contract
    # -------------------------------------------------------------------------

    @abstractmethod
    def compute_shape(self, shape: Shape) -> Shape:
        """Return the shape of a sample after this stage, given its input shape."""

    def resize(self, shape: Shape) -> Shape:
        """Resolve and store the declared output shape for ``shape`` inputs."""
        self._shape = Shape.from_sequence(self.compute_shape(Shape.from_sequence(shape)))
        return self._shape

    def shape(self) -> Shape:
        """Declared output shape."""
        if self._shape is None:
            raise PipelineConfigError(
                f"{self.describe()}: output shape not resolved, call resize() first"
            )
        return self._shape

    # -------------------------------------------------------------------------
    # Sample hooks
    # -------------------------------------------------------------------------

    def train_pass_number(self) -> int:
        return 1

    @abstractmethod
    def process_train_sample(
        self,
        label: str,
        sample: torch.Tensor,
        pass_index: int,
        sample_index: int,
        partition_size: int,
    ) -> Optional[torch.Tensor]:
        """Train on one sample. Mutate ``sample`` or return a replacement."""

    @abstractmethod
    def process_test_sample(
        self,
        label: str,
        sample: torch.Tensor,
        sample_index: int,
        partition_size: int,
    ) -> Optional[torch.Tensor]:
        """Transform one test sample. Mutate ``sample`` or return a replacement."""

    def __repr__(self) -> str:
        return f"<{self.describe()} index={self.index} shape={self._shape}>"


class UniquePassProcess(Process):
    """Stage that needs a single pass and treats every sample independently."""

    def train_pass_number(self) -> int:
        return 1

    @abstractmethod
    def process_train(self, label: str, sample: torch.Tensor) -> Optional[torch.Tensor]:
        pass

    @abstractmethod
    def process_test(self, label: str, sample: torch.Tensor) -> Optional[torch.Tensor]:
        pass

    def process_train_sample(self, label, sample, pass_index, sample_index, partition_size):
        return self.process_train(label, sample)

    def process_test_sample(self, label, sample, sample_index, partition_size):
        return self.process_test(label, sample)


class TwoPassProcess(Process):
    """
    Stage that first observes the whole train partition, then applies.

    Pass 0 calls ``compute`` on every train sample and leaves samples
    untouched. Pass 1 and the test pass call ``process``. ``reset`` runs
    before the first sample of pass 0, ``finalize`` after its last one.
    """

    def train_pass_number(self) -> int:
        return 2

    def reset(self) -> None:
        pass

    @abstractmethod
    def compute(self, label: str, sample: torch.Tensor) -> None:
        pass

    def finalize(self) -> None:
        pass

    @abstractmethod
    def process(self, label: str, sample: torch.Tensor) -> Optional[torch.Tensor]:
        pass

    def process_train_sample(self, label, sample, pass_index, sample_index, partition_size):
        if pass_index == 0:
            if sample_index == 0:
                self.reset()
            self.compute(label, sample)
            if sample_index == partition_size - 1:
                self.finalize()
            return None
        return self.process(label, sample)

    def process_test_sample(self, label, sample, sample_index, partition_size):
        return self.process(label, sample)


__all__ = [
    "Process",
    "UniquePassProcess",
    "TwoPassProcess",
]
