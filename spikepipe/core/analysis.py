"""
Analyses attached to output taps.

An analysis consumes samples but never changes them. The engine drives it
through a fixed lifecycle for each tap it belongs to::

    for p in range(train_pass_number()):
        before_train_pass(p)
        process_train_sample(label, tensor, p)   # every tap-local train sample
        after_train_pass(p)
    before_test()
    process_test_sample(label, tensor)           # every tap-local test sample
    after_test()

An analysis declaring zero passes skips every step except ``after_test``.
Results are written to the run logger bound with ``bind_logger``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import torch


class Analysis(ABC):
    """Abstract analysis. All hooks default to no-ops except the sample hooks."""

    def __init__(self) -> None:
        self.logger: logging.Logger = logging.getLogger("spikepipe.analysis")

    @classmethod
    def class_name(cls) -> str:
        return cls.__name__

    def bind_logger(self, logger: logging.Logger) -> None:
        """Attach the logger of the current run."""
        self.logger = logger

    def train_pass_number(self) -> int:
        return 1

    def before_train_pass(self, pass_index: int) -> None:
        pass

    @abstractmethod
    def process_train_sample(self, label: str, sample: torch.Tensor, pass_index: int) -> None:
        pass

    def after_train_pass(self, pass_index: int) -> None:
        pass

    def before_test(self) -> None:
        pass

    @abstractmethod
    def process_test_sample(self, label: str, sample: torch.Tensor) -> None:
        pass

    def after_test(self) -> None:
        pass


class UniquePassAnalysis(Analysis):
    """Analysis that looks at the train partition exactly once."""

    def train_pass_number(self) -> int:
        return 1

    @abstractmethod
    def process_train(self, label: str, sample: torch.Tensor) -> None:
        pass

    @abstractmethod
    def process_test(self, label: str, sample: torch.Tensor) -> None:
        pass

    def process_train_sample(self, label, sample, pass_index):
        self.process_train(label, sample)

    def process_test_sample(self, label, sample):
        self.process_test(label, sample)


class NoPassAnalysis(Analysis):
    """
    Analysis that only needs final state.

    The engine calls ``after_test`` and nothing else, so implementations
    work from references they were constructed with (a stage, a file path).
    """

    def train_pass_number(self) -> int:
        return 0

    def process_train_sample(self, label, sample, pass_index):
        raise RuntimeError(f"{self.class_name()} does not consume train samples")

    def process_test_sample(self, label, sample):
        raise RuntimeError(f"{self.class_name()} does not consume test samples")

    @abstractmethod
    def after_test(self) -> None:
        pass


__all__ = [
    "Analysis",
    "UniquePassAnalysis",
    "NoPassAnalysis",
]
