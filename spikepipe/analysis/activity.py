"""
Activity analysis: how sparse is the representation at a tap?
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Dict

import torch

from ..core.analysis import UniquePassAnalysis
from ..registry import ANALYSES


@dataclass
class ActivityStats:
    """Running activity statistics of one partition."""
    samples: int = 0
    active: int = 0
    total: int = 0
    activity_sum: float = 0.0
    quiet_samples: int = 0

    def update(self, sample: torch.Tensor) -> None:
        active = int(torch.count_nonzero(sample))
        self.samples += 1
        self.active += active
        self.total += sample.numel()
        self.activity_sum += float(sample.abs().sum())
        if active == 0:
            self.quiet_samples += 1

    @property
    def sparsity(self) -> float:
        """Fraction of zero coordinates."""
        return 1.0 - self.active / self.total if self.total else 1.0

    @property
    def mean_active(self) -> float:
        """Mean number of active coordinates per sample."""
        return self.active / self.samples if self.samples else 0.0

    @property
    def mean_activity(self) -> float:
        """Mean absolute value of active coordinates."""
        return self.activity_sum / self.active if self.active else 0.0

    def to_dict(self) -> Dict[str, float]:
        d = asdict(self)
        d.update(
            sparsity=self.sparsity,
            mean_active=self.mean_active,
            mean_activity=self.mean_activity,
        )
        return d


@ANALYSES.register("Activity")
class Activity(UniquePassAnalysis):
    """Report sparsity and activity level of the train and test partitions."""

    def __init__(self) -> None:
        super().__init__()
        self.train = ActivityStats()
        self.test = ActivityStats()

    def before_train_pass(self, pass_index: int) -> None:
        self.train = ActivityStats()

    def process_train(self, label, sample):
        self.train.update(sample)

    def after_train_pass(self, pass_index: int) -> None:
        self._report("train", self.train)

    def before_test(self) -> None:
        self.test = ActivityStats()

    def process_test(self, label, sample):
        self.test.update(sample)

    def after_test(self) -> None:
        self._report("test", self.test)

    def _report(self, partition: str, stats: ActivityStats) -> None:
        self.logger.info(
            f"  [{partition}] samples: {stats.samples}, "
            f"sparsity: {stats.sparsity * 100:.2f}%, "
            f"active/sample: {stats.mean_active:.1f}, "
            f"mean activity: {stats.mean_activity:.4f}, "
            f"quiet samples: {stats.quiet_samples}"
        )


__all__ = [
    "ActivityStats",
    "Activity",
]
