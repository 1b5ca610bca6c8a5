"""
Sparse Intermediate Execution.

The engine owns the dataset for the duration of a run. Samples are stored
compressed (``SparseTensor``) and only decompressed one at a time while a
stage works on them::

    inputs ──load──▶ [(label, sparse), ...]          (train / test partitions)

    for each stage i, strictly in order:
        for pass p in range(stage.train_pass_number()):
            for j, sample in train:  dense = from_sparse(sample)
                                     stage.process_train_sample(..., p, j, N)
                                     train[j] = to_sparse(dense)
                                     shape check on the final pass
        for j, sample in test:       same round trip, shape check every sample
        for each output tap bound to i:
            snapshot → converter → post-processing → analyses (tap-local copies)

Shape-contract violations and misconfigured stages abort the whole run.
Cancellation stops at the next sample or stage boundary and is reported in
the returned ``RunSummary`` rather than raised.

Example:
    >>> engine = SparseIntermediateExecution(experiment, ExecutionParams())
    >>> summary = engine.run()
    >>> summary.train.loaded, [s.elapsed for s in summary.stages]
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

import torch

from ..config import ExecutionParams
from ..core.analysis import Analysis
from ..core.output import Output, OutputConverter
from ..core.process import Process
from ..core.tensor import BufferArena, SparseTensor, from_sparse, to_sparse
from ..errors import (
    ExecutionCancelled,
    PipelineConfigError,
    SampleProcessingError,
    ShapeMismatchError,
)
from ..utils.logging import RunLog
from ..utils.signals import CancellationToken
from .loader import LoadReport, Sample, load_partition
from .observer import ProgressObserver


T = TypeVar("T")


# =============================================================================
# RUN SUMMARY
# =============================================================================


@dataclass
class StageReport:
    """Timing of one main-pipeline stage, its output taps included."""
    index: int
    name: str
    elapsed: float
    train_passes: int
    outputs: int


@dataclass
class RunSummary:
    """What happened during a run."""
    train: LoadReport = field(default_factory=lambda: LoadReport("train"))
    test: LoadReport = field(default_factory=lambda: LoadReport("test"))
    stages: List[StageReport] = field(default_factory=list)
    cancelled: bool = False
    cancel_reason: str = ""

    @property
    def completed_stages(self) -> int:
        return len(self.stages)

    @property
    def elapsed(self) -> float:
        return sum(s.elapsed for s in self.stages)


# =============================================================================
# ENGINE
# =============================================================================


class SparseIntermediateExecution:
    """
    Execution engine with sparse intermediate storage.

    Args:
        experiment: Provides ``name``, ``pipeline`` (stages with resolved
            shapes), ``outputs`` (taps), ``train_inputs`` and ``test_inputs``.
        params: Engine parameters.
        observer: Progress observer.
        log: Logging context of the run. A fresh one is created if None.
    """

    def __init__(
        self,
        experiment,
        params: Optional[ExecutionParams] = None,
        observer: Optional[ProgressObserver] = None,
        log: Optional[RunLog] = None,
    ) -> None:
        self.experiment = experiment
        self.params = params or ExecutionParams()
        self.params.validate()
        self.observer = observer or ProgressObserver()
        self.log = log or RunLog(getattr(experiment, "name", "run"))

        self._train_set: List[Sample] = []
        self._test_set: List[Sample] = []
        self._arena = BufferArena(enabled=self.params.reuse_buffers)
        self._cancel = CancellationToken()

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    def run(
        self,
        refresh_interval: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> RunSummary:
        """
        Load the data and run every stage in order.

        Args:
            refresh_interval: Call ``observer.refresh`` every N samples.
                Defaults to ``params.refresh_interval``.
            cancel: Token checked at every sample and stage boundary.

        Returns:
            RunSummary. ``cancelled`` is set when the run stopped on request.

        Raises:
            PipelineConfigError: A stage declares zero training passes or has
                no resolved shape.
            ShapeMismatchError: A stage broke its shape contract.
            SampleProcessingError: A sample failed during a parallel pass.
        """
        if refresh_interval is None:
            refresh_interval = self.params.refresh_interval
        self._cancel = cancel or CancellationToken()

        pipeline: Sequence[Process] = self.experiment.pipeline
        summary = RunSummary()

        try:
            self._validate_pipeline(pipeline, self.experiment.outputs)
            summary.train, summary.test = self._load_data()

            for i, process in enumerate(pipeline):
                self._check_cancelled()
                summary.stages.append(self._run_stage(i, process, refresh_interval))

        except ExecutionCancelled as e:
            summary.cancelled = True
            summary.cancel_reason = str(e)
            self.log.warning(
                f"Run cancelled after {summary.completed_stages}/{len(pipeline)} stages: {e}"
            )
        finally:
            self.log.print(
                f"Summary: {summary.train.summary()}; {summary.test.summary()}; "
                f"{summary.completed_stages}/{len(pipeline)} stages completed"
            )
            self._train_set.clear()
            self._test_set.clear()
            self._arena.clear()

        return summary

    def _run_stage(self, index: int, process: Process, refresh_interval: Optional[int]) -> StageReport:
        start = time.perf_counter()
        self.log.print(f"Process {process.describe()}")
        self.observer.stage_started(index, process.describe())

        n_passes = self._process_train_data(
            process, self._train_set, refresh_interval, stage_index=index
        )
        self._process_test_data(
            process, self._test_set, refresh_interval,
            stage_index=index, counter_offset=n_passes * len(self._train_set),
        )
        n_outputs = self._process_output(index)

        elapsed = time.perf_counter() - start
        self.log.print(f"-------------- {process.name or process.class_name()} time: {elapsed:.3f}s")
        self.observer.stage_finished(index, elapsed)

        return StageReport(
            index=index,
            name=process.describe(),
            elapsed=elapsed,
            train_passes=n_passes,
            outputs=n_outputs,
        )

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def _validate_pipeline(self, pipeline: Sequence[Process], outputs: Sequence[Output]) -> None:
        """Fail before touching any sample if a stage cannot run."""
        stages = list(pipeline)
        for output in outputs:
            if output.index >= len(stages):
                raise PipelineConfigError(
                    f"Output {output.name!r} is bound to stage {output.index}, "
                    f"but the pipeline has {len(stages)} stages"
                )
            stages.extend(output.postprocessing)

        for process in stages:
            self._pass_number(process)
            process.shape()

    @staticmethod
    def _pass_number(process: Process) -> int:
        n = process.train_pass_number()
        if n <= 0:
            raise PipelineConfigError(
                f"{process.describe()}: train_pass_number() should be > 0, got {n}"
            )
        return n

    @staticmethod
    def _check_shape(process: Process, sparse: SparseTensor, sample_index: int) -> None:
        if sparse.shape != process.shape():
            raise ShapeMismatchError(
                sparse.shape, process.shape(), process.describe(), sample_index
            )

    def _check_cancelled(self) -> None:
        if self._cancel.cancelled:
            raise ExecutionCancelled(self._cancel.reason or "cancellation requested")

    # =========================================================================
    # DATA
    # =========================================================================

    def _load_data(self):
        self._train_set.clear()
        self._test_set.clear()

        train_inputs = list(self.experiment.train_inputs)
        test_inputs = list(self.experiment.test_inputs)

        self.log.print(f"{len(train_inputs)} elements in dataset")
        self._train_set, train_report = load_partition(
            train_inputs, "train", self.log,
            max_consecutive_failures=self.params.max_consecutive_failures,
            default=self.params.sparse_default,
        )
        self.log.print(f"Completed loading training data. Failed: {train_report.failed} inputs")

        self._test_set, test_report = load_partition(
            test_inputs, "test", self.log,
            max_consecutive_failures=self.params.max_consecutive_failures,
            default=self.params.sparse_default,
        )
        self.log.print(
            f"Data loading complete. Training samples: {len(self._train_set)}, "
            f"Test samples: {len(self._test_set)}, "
            f"Failed inputs: {train_report.failed + test_report.failed}"
        )
        return train_report, test_report

    def _compress(self, tensor: torch.Tensor) -> SparseTensor:
        return to_sparse(tensor, default=self.params.sparse_default)

    # =========================================================================
    # PASSES
    # =========================================================================

    def _tick(self, stage_index: Optional[int], counter: int, refresh_interval: Optional[int]) -> None:
        if stage_index is None:
            return
        self.observer.tick(stage_index, counter)
        if refresh_interval and counter % refresh_interval == 0:
            self.observer.refresh(stage_index)

    def _process_train_data(
        self,
        process: Process,
        data: List[Sample],
        refresh_interval: Optional[int] = None,
        stage_index: Optional[int] = None,
    ) -> int:
        """
        Run every training pass of ``process`` over ``data`` in place.

        Ticks are only emitted when ``stage_index`` is given (main pipeline).

        Returns:
            Number of passes run.
        """
        n = self._pass_number(process)
        size = len(data)

        for p in range(n):
            validate = self.params.validate_every_pass or p == n - 1
            total_nnz = 0

            for j in range(size):
                self._check_cancelled()

                label, sparse = data[j]
                current = self._arena.materialize(sparse)
                result = process.process_train_sample(label, current, p, j, size)
                sparse = self._compress(current if result is None else result)
                data[j] = (label, sparse)
                total_nnz += sparse.nnz

                if validate:
                    self._check_shape(process, sparse, j)

                self._tick(stage_index, p * size + j, refresh_interval)

            if size:
                self.log.debug(
                    f"  {process.describe()} pass {p + 1}/{n}: "
                    f"{total_nnz / size:.1f} stored values per sample"
                )

        return n

    def _test_one(self, process: Process, sample: Sample, j: int, size: int, reuse: bool) -> SparseTensor:
        self._check_cancelled()

        label, sparse = sample
        current = self._arena.materialize(sparse) if reuse else from_sparse(sparse)
        result = process.process_test_sample(label, current, j, size)
        sparse = self._compress(current if result is None else result)
        self._check_shape(process, sparse, j)
        return sparse

    def _process_test_data(
        self,
        process: Process,
        data: List[Sample],
        refresh_interval: Optional[int] = None,
        stage_index: Optional[int] = None,
        counter_offset: int = 0,
    ) -> None:
        """Run the single test pass of ``process`` over ``data`` in place."""
        size = len(data)

        if self.params.num_workers > 1 and size > 1:
            results = self._parallel_map(
                lambda j: self._test_one(process, data[j], j, size, reuse=False), size
            )
            for j, sparse in enumerate(results):
                data[j] = (data[j][0], sparse)
                self._tick(stage_index, counter_offset + j, refresh_interval)
            return

        for j in range(size):
            sparse = self._test_one(process, data[j], j, size, reuse=True)
            data[j] = (data[j][0], sparse)
            self._tick(stage_index, counter_offset + j, refresh_interval)

    def _parallel_map(self, fn: Callable[[int], T], size: int) -> List[T]:
        """
        Evaluate ``fn(j)`` for every index on a thread pool.

        Results keep their index. Every task runs to completion; then the
        lowest-index failure is raised.
        """
        results: List[Optional[T]] = [None] * size
        failures: Dict[int, BaseException] = {}

        with ThreadPoolExecutor(max_workers=self.params.num_workers) as pool:
            futures = {pool.submit(fn, j): j for j in range(size)}
            for future in as_completed(futures):
                j = futures[future]
                try:
                    results[j] = future.result()
                except Exception as e:
                    failures[j] = e

        if failures:
            self._check_cancelled()
            for j in sorted(failures):
                self.log.error(f"Sample #{j} failed: {failures[j]}")
            first = min(failures)
            error = failures[first]
            if isinstance(error, ShapeMismatchError):
                raise error
            raise SampleProcessingError(first, error) from error

        return results

    # =========================================================================
    # OUTPUT TAPS
    # =========================================================================

    def _snapshot(self, converter: OutputConverter, data: List[Sample]) -> List[Sample]:
        """Tap-local copy of ``data`` passed through ``converter``."""

        def convert(j: int) -> Sample:
            self._check_cancelled()
            label, sparse = data[j]
            return label, self._compress(converter.process(from_sparse(sparse)))

        if self.params.num_workers > 1 and len(data) > 1:
            return self._parallel_map(convert, len(data))
        return [convert(j) for j in range(len(data))]

    def _process_output(self, index: int) -> int:
        """
        Run every output tap bound to stage ``index``.

        Returns:
            Number of taps run.
        """
        count = 0
        for output in self.experiment.outputs:
            if output.index != index:
                continue
            count += 1
            self._check_cancelled()
            self.log.print(f"Output {output.name}")

            train_set = self._snapshot(output.converter, self._train_set)
            test_set = self._snapshot(output.converter, self._test_set)

            for process in output.postprocessing:
                self.log.print(f"Process {process.describe()}")
                self._process_train_data(process, train_set)
                self._process_test_data(process, test_set)

            for analysis in output.analysis:
                self._run_analysis(output, analysis, train_set, test_set)

            train_set.clear()
            test_set.clear()

        return count

    def _run_analysis(
        self,
        output: Output,
        analysis: Analysis,
        train_set: List[Sample],
        test_set: List[Sample],
    ) -> None:
        self.log.log(f"{output.name}, analysis {analysis.class_name()}:")
        analysis.bind_logger(self.log.results)

        n = analysis.train_pass_number()
        if n < 0:
            raise PipelineConfigError(
                f"{analysis.class_name()}: train_pass_number() must be >= 0, got {n}"
            )

        if n == 0:
            analysis.after_test()
            return

        for p in range(n):
            analysis.before_train_pass(p)
            for label, sparse in train_set:
                self._check_cancelled()
                analysis.process_train_sample(label, from_sparse(sparse), p)
            analysis.after_train_pass(p)

        analysis.before_test()
        for label, sparse in test_set:
            self._check_cancelled()
            analysis.process_test_sample(label, from_sparse(sparse))
        analysis.after_test()


__all__ = [
    "StageReport",
    "RunSummary",
    "SparseIntermediateExecution",
]
