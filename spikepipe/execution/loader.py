"""
Dataset loading into sparse partitions.

Every ``Input`` of a partition is drained entry by entry. Each entry is
compressed with ``to_sparse`` and appended in order. Failures are
per-entry: one bad sample is logged with its source and entry numbers,
counted, and skipped. The load itself never raises for bad data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from ..core.tensor import SparseTensor, to_sparse
from ..data.input import Input
from ..errors import InputExhaustedError
from ..utils.logging import RunLog


Sample = Tuple[str, SparseTensor]


@dataclass
class LoadResult:
    """Outcome of loading one entry."""
    ok: bool
    sample: Optional[Sample] = None
    error: str = ""
    exhausted: bool = False

    @classmethod
    def success(cls, label: str, sparse: SparseTensor) -> "LoadResult":
        return cls(ok=True, sample=(label, sparse))

    @classmethod
    def failure(cls, error: str) -> "LoadResult":
        return cls(ok=False, error=error)


@dataclass
class LoadReport:
    """
    Aggregate counters for one partition.

    Attributes:
        partition: "train" or "test".
        sources: Inputs attempted, null ones included.
        loaded: Samples successfully loaded.
        failed: Failed attempts (null inputs, bad entries, broken sources).
        failed_sources: Sources that were null or stopped on an error.
        errors: First diagnostics, kept for the summary.
    """
    partition: str
    sources: int = 0
    loaded: int = 0
    failed: int = 0
    failed_sources: int = 0
    errors: List[str] = field(default_factory=list)

    MAX_ERRORS = 20

    def record_error(self, message: str) -> None:
        self.failed += 1
        if len(self.errors) < self.MAX_ERRORS:
            self.errors.append(message)

    def summary(self) -> str:
        return (
            f"{self.partition}: {self.loaded} samples loaded from {self.sources} sources, "
            f"{self.failed} failed"
        )


def _load_entry(source: Input, source_number: int, entry_number: int, default: float) -> LoadResult:
    try:
        label, value = source.next()
    except InputExhaustedError:
        return LoadResult(ok=False, exhausted=True)
    except Exception as e:
        return LoadResult.failure(
            f"Error processing entry {entry_number} of input #{source_number}: {e}"
        )

    try:
        return LoadResult.success(str(label), to_sparse(value, default=default))
    except Exception as e:
        return LoadResult.failure(
            f"Error converting entry {entry_number} of input #{source_number}: {e}"
        )


def load_partition(
    inputs: Iterable[Optional[Input]],
    partition: str,
    log: RunLog,
    max_consecutive_failures: int = 100,
    default: float = 0.0,
) -> Tuple[List[Sample], LoadReport]:
    """
    Drain ``inputs`` into an ordered list of sparse samples.

    Args:
        inputs: Sources in order. ``None`` entries are counted and skipped.
        partition: Partition name for logs.
        log: Run logging context.
        max_consecutive_failures: Abandon a source after this many failing
            entries in a row.
        default: Implicit value of the sparse storage.

    Returns:
        Tuple of (samples, report).
    """
    samples: List[Sample] = []
    report = LoadReport(partition=partition)

    for source_number, source in enumerate(inputs, start=1):
        report.sources += 1

        if source is None:
            log.warning(f"Null {partition} input at position {source_number}")
            report.failed_sources += 1
            report.record_error(f"Null input #{source_number}")
            continue

        entry_number = 0
        consecutive_failures = 0
        try:
            while source.has_next():
                result = _load_entry(source, source_number, entry_number, default)
                entry_number += 1

                if result.exhausted:
                    break

                if result.ok:
                    label, sparse = result.sample
                    if not label:
                        log.warning(
                            f"Empty label at entry {entry_number - 1} of input #{source_number}"
                        )
                    samples.append(result.sample)
                    report.loaded += 1
                    consecutive_failures = 0
                    continue

                log.error(result.error)
                report.record_error(result.error)
                consecutive_failures += 1
                if consecutive_failures >= max_consecutive_failures:
                    log.error(
                        f"Abandoning input #{source_number} after "
                        f"{consecutive_failures} consecutive failures"
                    )
                    report.failed_sources += 1
                    break
        except Exception as e:
            message = f"Error processing {partition} data #{source_number}: {e}"
            log.error(message)
            report.failed_sources += 1
            report.record_error(message)
        finally:
            try:
                source.close()
            except Exception as e:
                message = f"Error closing {partition} input #{source_number}: {e}"
                log.error(message)
                report.record_error(message)

    return samples, report


__all__ = [
    "Sample",
    "LoadResult",
    "LoadReport",
    "load_partition",
]
