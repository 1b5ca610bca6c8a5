"""Shared stages, analyses and fixtures for the spikepipe tests."""

import logging
from typing import List, Optional, Tuple

import pytest
import torch

from spikepipe.core.analysis import Analysis
from spikepipe.core.process import Process
from spikepipe.core.tensor import Shape
from spikepipe.data.input import Input, TensorListInput
from spikepipe.errors import InputExhaustedError
from spikepipe.utils.logging import RunLog


class RecordingStage(Process):
    """Identity stage that records every call and the values it saw."""

    def __init__(self, passes: int = 1, name: str = "") -> None:
        super().__init__(name)
        self.passes = passes
        self.train_calls: List[Tuple[str, int, int]] = []
        self.test_calls: List[Tuple[str, int]] = []
        self.seen: List[torch.Tensor] = []

    def compute_shape(self, shape):
        return shape

    def train_pass_number(self):
        return self.passes

    def process_train_sample(self, label, sample, pass_index, sample_index, partition_size):
        self.train_calls.append((label, pass_index, sample_index))
        self.seen.append(sample.clone())

    def process_test_sample(self, label, sample, sample_index, partition_size):
        self.test_calls.append((label, sample_index))
        self.seen.append(sample.clone())


class AddStage(Process):
    """Adds ``amount`` in place on every train pass and on the test pass."""

    def __init__(self, amount: float = 1.0, passes: int = 1) -> None:
        super().__init__()
        self.amount = amount
        self.passes = passes

    def compute_shape(self, shape):
        return shape

    def train_pass_number(self):
        return self.passes

    def process_train_sample(self, label, sample, pass_index, sample_index, partition_size):
        sample.add_(self.amount)

    def process_test_sample(self, label, sample, sample_index, partition_size):
        sample.add_(self.amount)


class DepthDoublingStage(Process):
    """Declares an unchanged shape but doubles the depth of what it returns."""

    def __init__(self, on_train_pass: Optional[int] = None, on_test: bool = True,
                 passes: int = 1) -> None:
        super().__init__()
        self.on_train_pass = on_train_pass
        self.on_test = on_test
        self.passes = passes

    def compute_shape(self, shape):
        return shape

    def train_pass_number(self):
        return self.passes

    def process_train_sample(self, label, sample, pass_index, sample_index, partition_size):
        if pass_index == self.on_train_pass:
            return torch.cat([sample, sample], dim=2)
        return None

    def process_test_sample(self, label, sample, sample_index, partition_size):
        if self.on_test:
            return torch.cat([sample, sample], dim=2)
        return None


class RecordingAnalysis(Analysis):
    """Records the lifecycle calls and the first value of every sample."""

    def __init__(self, passes: int = 1) -> None:
        super().__init__()
        self.passes = passes
        self.events: List[str] = []
        self.train_values: List[float] = []
        self.test_values: List[float] = []

    def train_pass_number(self):
        return self.passes

    def before_train_pass(self, pass_index):
        self.events.append(f"before_train_pass({pass_index})")

    def process_train_sample(self, label, sample, pass_index):
        self.events.append(f"train({label},{pass_index})")
        self.train_values.append(float(sample.reshape(-1)[0]))

    def after_train_pass(self, pass_index):
        self.events.append(f"after_train_pass({pass_index})")

    def before_test(self):
        self.events.append("before_test")

    def process_test_sample(self, label, sample):
        self.events.append(f"test({label})")
        self.test_values.append(float(sample.reshape(-1)[0]))

    def after_test(self):
        self.events.append("after_test")


class FlakyInput(Input):
    """
    Input whose entries fail when their value is None.

    ``closed`` counts calls to ``close``.
    """

    def __init__(self, entries, shape=(2, 2, 1, 1), stuck: bool = False) -> None:
        self._entries = list(entries)
        self._shape = Shape.from_sequence(shape)
        self._cursor = 0
        self.stuck = stuck
        self.closed = 0

    @property
    def shape(self):
        return self._shape

    def has_next(self):
        return self.stuck or self._cursor < len(self._entries)

    def next(self):
        if self.stuck:
            raise OSError("device not ready")
        if self._cursor >= len(self._entries):
            raise InputExhaustedError("exhausted")
        label, value = self._entries[self._cursor]
        self._cursor += 1
        if value is None:
            raise OSError(f"corrupt entry {self._cursor - 1}")
        return label, value

    def reset(self):
        self._cursor = 0

    def close(self):
        self.closed += 1


def constant(value: float, shape=(4, 4, 1, 1)) -> torch.Tensor:
    return torch.full(shape, value)


@pytest.fixture
def run_log() -> RunLog:
    return RunLog("test", parent=logging.getLogger("spikepipe.tests"))



@pytest.fixture
def cat_dog() -> TensorListInput:
    return TensorListInput([("cat", constant(1.0)), ("dog", constant(2.0))])
