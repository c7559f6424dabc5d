# tests/tracking/test_metrics.py
from __future__ import annotations

import threading

import pytest

from file_assoc.parallel.types import FileTask, TaskResult, TaskStatus
from file_assoc.tracking.metrics import ExtensionStatus, MetricsAggregator


class StepClock:
    """Returns 0, 1, 2, ... on successive calls."""

    def __init__(self):
        self.t = -1.0

    def __call__(self) -> float:
        self.t += 1.0
        return self.t


def _result(i: int, ext: str = "md", status=TaskStatus.CLEARED, had=True):
    return TaskResult(
        task=FileTask(path=f"/r/{i}.{ext}", extension=ext),
        status=status,
        had_override=had,
    )


def test_record_and_finalize_compute_rate():
    agg = MetricsAggregator(clock=StepClock())
    agg.start("md")  # t=0
    agg.record("md", _result(1))
    agg.record("md", _result(2, status=TaskStatus.SKIPPED, had=False))
    agg.record("md", _result(3, status=TaskStatus.ERROR, had=False))
    m = agg.finalize("md")  # t=1

    assert (m.files_total, m.files_with_override, m.files_cleared, m.errors) == (3, 1, 1, 1)
    assert m.duration == 1.0
    assert m.rate == pytest.approx(3.0)
    assert m.status is ExtensionStatus.COMPLETED


def test_dry_run_results_count_overrides_without_clears():
    agg = MetricsAggregator()
    agg.record("md", _result(1, status=TaskStatus.WOULD_CLEAR))
    m = agg.finalize("md")
    assert m.files_with_override == 1
    assert m.files_cleared == 0


def test_finalize_is_idempotent_and_freezes():
    agg = MetricsAggregator()
    agg.record("md", _result(1))
    first = agg.finalize("md")
    assert agg.finalize("md", ExtensionStatus.CANCELLED) is first
    with pytest.raises(ValueError):
        agg.record("md", _result(2))
    assert not agg.is_open("md")


def test_concurrent_records_lose_nothing():
    agg = MetricsAggregator()
    agg.start("md")
    n_threads, per_thread = 8, 500

    def work(offset):
        for i in range(per_thread):
            agg.record("md", _result(offset * per_thread + i))

    threads = [threading.Thread(target=work, args=(k,)) for k in range(n_threads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    m = agg.finalize("md")
    assert m.files_total == n_threads * per_thread
    assert m.files_with_override == n_threads * per_thread


def test_report_orders_extensions_and_marks_open_ones():
    agg = MetricsAggregator(clock=StepClock())
    agg.start("md")
    agg.record("md", _result(1))
    agg.finalize("md")
    agg.start("log")
    agg.finalize("log", ExtensionStatus.SKIPPED)
    agg.start("txt")
    agg.record("txt", _result(1, "txt"))

    report = agg.report(status="cancelled")
    assert [m.extension for m in report.extensions] == ["md", "log", "txt"]
    assert report.get("log").status is ExtensionStatus.SKIPPED
    assert report.get("txt").status is ExtensionStatus.IN_PROGRESS
    assert report.get("csv") is None
    assert report.cancelled
    assert report.total_files == 2


def test_total_duration_sequential_sum_vs_parallel_span():
    agg = MetricsAggregator(clock=StepClock())
    agg.start("a")        # 0
    agg.start("b")        # 1
    agg.finalize("a")     # 2 -> a: 2s
    agg.finalize("b")     # 3 -> b: 2s
    seq = agg.report(parallel=False)  # end 4
    par = agg.report(parallel=True)   # end 5
    assert seq.total_duration == 4.0
    assert par.total_duration == 5.0


def test_fastest_and_slowest_only_rank_extensions_with_files():
    agg = MetricsAggregator(clock=StepClock())
    for ext, n in (("a", 1), ("b", 5), ("c", 0), ("d", 3)):
        agg.start(ext)
        for i in range(n):
            agg.record(ext, _result(i, ext))
        agg.finalize(ext)
    report = agg.report()
    assert [m.extension for m in report.fastest()] == ["b", "d", "a"]
    assert [m.extension for m in report.slowest(2)] == ["a", "d"]
