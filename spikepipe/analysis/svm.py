"""
Linear SVM readout.

Measures how linearly separable the classes are at a tap: a linear SVM is
fit on the flattened train samples and scored on the test samples.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, List, Optional

import numpy as np
from sklearn.svm import LinearSVC

from ..core.analysis import UniquePassAnalysis
from ..registry import ANALYSES


@ANALYSES.register("Svm")
class Svm(UniquePassAnalysis):
    """
    Classification rate of a linear SVM trained on tap features.

    Args:
        c: Regularisation strength (``C`` of ``LinearSVC``).
        max_iter: Solver iteration cap.

    Attributes:
        accuracy: Test classification rate, None until ``after_test``.
        per_class: Test classification rate of each label.
    """

    def __init__(self, c: float = 1.0, max_iter: int = 5000) -> None:
        super().__init__()
        self.c = c
        self.max_iter = max_iter
        self.model: Optional[LinearSVC] = None
        self.accuracy: Optional[float] = None
        self.per_class: Dict[str, float] = {}
        self._x: List[np.ndarray] = []
        self._y: List[str] = []

    def before_train_pass(self, pass_index: int) -> None:
        self._x, self._y = [], []
        self.model = None

    def process_train(self, label, sample):
        self._x.append(sample.reshape(-1).numpy().copy())
        self._y.append(label)

    def after_train_pass(self, pass_index: int) -> None:
        classes = set(self._y)
        if len(classes) < 2:
            self.logger.warning(
                f"  Svm needs at least 2 classes, got {len(classes)}; skipping fit"
            )
            return

        self.model = LinearSVC(C=self.c, max_iter=self.max_iter)
        self.model.fit(np.stack(self._x), np.asarray(self._y))
        self.logger.info(f"  Svm fit on {len(self._y)} samples, {len(classes)} classes")
        self._x, self._y = [], []

    def before_test(self) -> None:
        self._x, self._y = [], []
        self.accuracy = None
        self.per_class = {}

    def process_test(self, label, sample):
        self._x.append(sample.reshape(-1).numpy().copy())
        self._y.append(label)

    def after_test(self) -> None:
        if self.model is None or not self._y:
            self.logger.warning("  Svm: nothing to score")
            return

        predicted = self.model.predict(np.stack(self._x))
        truth = np.asarray(self._y)
        correct = predicted == truth

        self.accuracy = float(correct.mean())
        totals = Counter(self._y)
        hits = Counter(label for label, ok in zip(self._y, correct) if ok)
        self.per_class = {label: hits[label] / n for label, n in sorted(totals.items())}

        self.logger.info(
            f"  classification rate: {self.accuracy * 100:.2f}% "
            f"({int(correct.sum())}/{len(truth)})"
        )
        for label, rate in self.per_class.items():
            self.logger.info(f"    {label}: {rate * 100:.2f}%")

        self._x, self._y = [], []


__all__ = [
    "Svm",
]
