# tracking/metrics.py
"""Per-extension performance metrics and the end-of-run report."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from file_assoc.parallel.types import TaskResult, TaskStatus
from file_assoc.tracking.sampling import SampleResult

__all__ = [
    "ExtensionStatus",
    "ExtensionMetrics",
    "RunReport",
    "MetricsAggregator",
]


class ExtensionStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"  # sampler found nothing worth processing
    EMPTY = "empty"  # no files with this extension
    PARTIAL = "partial"  # dispatch halted on a worker error
    CANCELLED = "cancelled"  # interrupted mid-extension
    LIMITED = "limited"  # max-files ceiling reached


@dataclass(frozen=True)
class ExtensionMetrics:
    """Closed-out metrics for one extension batch."""

    extension: str
    files_total: int
    files_with_override: int
    files_cleared: int
    errors: int
    start_time: float
    end_time: float
    status: ExtensionStatus = ExtensionStatus.COMPLETED
    sample: Optional[SampleResult] = None

    @property
    def duration(self) -> float:
        return max(0.0, self.end_time - self.start_time)

    @property
    def rate(self) -> float:
        """Files per second (0.0 when nothing was processed)."""
        if self.files_total == 0 or self.duration <= 0:
            return 0.0
        return self.files_total / self.duration


@dataclass(frozen=True)
class RunReport:
    """Ordered per-extension metrics plus run-wide totals."""

    extensions: Tuple[ExtensionMetrics, ...]
    start_time: float
    end_time: float
    parallel: bool = False
    status: str = "completed"

    @property
    def total_files(self) -> int:
        return sum(m.files_total for m in self.extensions)

    @property
    def total_with_override(self) -> int:
        return sum(m.files_with_override for m in self.extensions)

    @property
    def total_cleared(self) -> int:
        return sum(m.files_cleared for m in self.extensions)

    @property
    def total_errors(self) -> int:
        return sum(m.errors for m in self.extensions)

    @property
    def total_duration(self) -> float:
        """Wall-clock span for parallel runs, summed batch time otherwise."""
        if self.parallel:
            return max(0.0, self.end_time - self.start_time)
        return sum(m.duration for m in self.extensions)

    @property
    def rate(self) -> float:
        duration = self.total_duration
        if self.total_files == 0 or duration <= 0:
            return 0.0
        return self.total_files / duration

    @property
    def cancelled(self) -> bool:
        return self.status == "cancelled"

    def get(self, extension: str) -> Optional[ExtensionMetrics]:
        for m in self.extensions:
            if m.extension == extension:
                return m
        return None

    def _ranked(self, reverse: bool, n: int) -> List[ExtensionMetrics]:
        active = [m for m in self.extensions if m.files_total > 0]
        return sorted(active, key=lambda m: m.rate, reverse=reverse)[:n]

    def fastest(self, n: int = 5) -> List[ExtensionMetrics]:
        return self._ranked(True, n)

    def slowest(self, n: int = 5) -> List[ExtensionMetrics]:
        return self._ranked(False, n)


@dataclass
class _Tally:
    extension: str
    start_time: float
    files_total: int = 0
    files_with_override: int = 0
    files_cleared: int = 0
    errors: int = 0
    sample: Optional[SampleResult] = None

    def freeze(self, end_time: float, status: ExtensionStatus) -> ExtensionMetrics:
        return ExtensionMetrics(
            extension=self.extension,
            files_total=self.files_total,
            files_with_override=self.files_with_override,
            files_cleared=self.files_cleared,
            errors=self.errors,
            start_time=self.start_time,
            end_time=end_time,
            status=status,
            sample=self.sample,
        )


class MetricsAggregator:
    """
    Sole owner of per-extension counters.

    All mutation goes through one lock, so ``record`` may be called from
    any number of threads without losing increments. Once an extension is
    finalized its metrics are frozen and further records are rejected.
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter):
        self.clock = clock
        self._open: Dict[str, _Tally] = {}
        self._closed: Dict[str, ExtensionMetrics] = {}
        self._order: List[str] = []
        self._lock = threading.Lock()
        self._run_start: Optional[float] = None

    def start(self, extension: str) -> None:
        with self._lock:
            self._start_locked(extension)

    def _start_locked(self, extension: str) -> _Tally:
        if extension in self._closed:
            raise ValueError(f"Extension {extension!r} already finalized")
        tally = self._open.get(extension)
        if tally is None:
            now = self.clock()
            if self._run_start is None:
                self._run_start = now
            tally = _Tally(extension=extension, start_time=now)
            self._open[extension] = tally
            self._order.append(extension)
        return tally

    def record_sample(self, extension: str, sample: SampleResult) -> None:
        with self._lock:
            self._start_locked(extension).sample = sample

    def record(self, extension: str, result: TaskResult) -> None:
        """Add one completed task's observation."""
        with self._lock:
            tally = self._start_locked(extension)
            tally.files_total += 1
            if result.had_override:
                tally.files_with_override += 1
            if result.status is TaskStatus.CLEARED:
                tally.files_cleared += 1
            elif result.status is TaskStatus.ERROR:
                tally.errors += 1

    def finalize(
        self,
        extension: str,
        status: ExtensionStatus = ExtensionStatus.COMPLETED,
    ) -> ExtensionMetrics:
        """Close out an extension; repeated calls return the frozen metrics."""
        with self._lock:
            if extension in self._closed:
                return self._closed[extension]
            tally = self._start_locked(extension)
            metrics = tally.freeze(self.clock(), status)
            del self._open[extension]
            self._closed[extension] = metrics
            return metrics

    def is_open(self, extension: str) -> bool:
        with self._lock:
            return extension in self._open

    def report(self, *, parallel: bool = False, status: str = "completed") -> RunReport:
        """Snapshot every extension seen so far, in start order."""
        with self._lock:
            now = self.clock()
            items = []
            for ext in self._order:
                if ext in self._closed:
                    items.append(self._closed[ext])
                else:
                    items.append(self._open[ext].freeze(now, ExtensionStatus.IN_PROGRESS))
            start = self._run_start if self._run_start is not None else now
            return RunReport(
                extensions=tuple(items),
                start_time=start,
                end_time=now,
                parallel=parallel,
                status=status,
            )
