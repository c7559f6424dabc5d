# tests/pipeline/test_report.py
from datetime import datetime

import logging

from file_assoc.pipeline.report import (
    format_performance_report,
    format_run_summary,
    format_sample_result,
    format_summary_line,
    log_performance_report,
    log_run_summary,
    print_run_summary,
)
from file_assoc.tracking.metrics import ExtensionMetrics, ExtensionStatus, RunReport
from file_assoc.tracking.sampling import SampleResult


def _demo_kwargs():
    return dict(
        root="/Users/me/projects",
        extensions=("md", "txt", "log"),
        workers=6,
        executor_name="processes",
        start_time=datetime(2025, 8, 18, 12, 34, 56),
        dry_run=True,
        sample_size=100,
        max_files=10_000,
        max_rate=None,
        max_memory_mb=500,
        chunk_size=100,
    )


def _metrics(ext, files, attrs, start, end, status=ExtensionStatus.COMPLETED):
    return ExtensionMetrics(
        extension=ext,
        files_total=files,
        files_with_override=attrs,
        files_cleared=attrs,
        errors=0,
        start_time=start,
        end_time=end,
        status=status,
    )


def _report(status="completed"):
    return RunReport(
        extensions=(
            _metrics("md", 3, 2, 0.0, 0.5),
            _metrics("log", 0, 0, 0.5, 0.75, ExtensionStatus.SKIPPED),
            _metrics("txt", 40, 1, 0.75, 2.75),
        ),
        start_time=0.0,
        end_time=3.0,
        status=status,
    )


def test_format_run_summary_no_color_contains_key_fields():
    s = format_run_summary(color=False, **_demo_kwargs())
    assert "Start Time: 2025-08-18 12:34:56" in s
    assert "Target directory:           /Users/me/projects" in s
    assert ".md, .txt, .log" in s
    assert "DRY RUN" in s
    assert "Sample size:                100" in s
    assert "Max files:                  10,000" in s
    assert "Max rate:                   unthrottled" in s
    assert "Max memory:                 500MB" in s
    assert "Worker processes/threads:   6 (processes)" in s
    assert "\x1b[" not in s


def test_format_run_summary_color_includes_ansi():
    s = format_run_summary(color=True, **_demo_kwargs())
    assert "\x1b[0;31mStart Time:" in s
    assert "\x1b[4mReset Configuration\x1b[0m" in s


def test_print_run_summary_outputs_to_stdout(capsys):
    print_run_summary(color=False, **_demo_kwargs())
    out = capsys.readouterr().out
    assert "Reset Configuration" in out
    assert out.endswith("\n")


def test_log_run_summary_logs_each_line(caplog):
    caplog.set_level(logging.INFO, logger="file_assoc.pipeline.report")
    log_run_summary(**_demo_kwargs())
    messages = [r.getMessage() for r in caplog.records]
    assert any(m.startswith("Start Time: ") for m in messages)
    assert any("Worker processes/threads:" in m for m in messages)
    assert all("\x1b[" not in m for m in messages)


def test_performance_report_table_and_totals():
    text = format_performance_report(_report())
    lines = text.splitlines()
    header = next(l for l in lines if l.startswith("Extension"))
    assert header.split() == ["Extension", "Files", "w/Attrs", "Duration", "Rate"]

    md = next(l for l in lines if l.startswith(".md "))
    assert md.split() == [".md", "3", "2", "0.50s", "6.0/s"]
    log = next(l for l in lines if l.startswith(".log "))
    assert log.split()[:3] == [".log", "0", "0"]
    assert "[skipped]" in log

    total = next(l for l in lines if l.startswith("TOTAL"))
    assert total.split() == ["TOTAL", "43", "3", "2.75s", "15.6/s"]
    assert "Processed 43 files in 2.75s (15.6 files/s)" in text


def test_performance_report_rankings_skip_empty_extensions():
    text = format_performance_report(_report())
    fastest = text.split("Top 5 Fastest:")[1].split("Top 5 Slowest:")[0]
    assert ".txt" in fastest and ".md" in fastest
    assert ".log" not in fastest


def test_cancelled_report_is_marked():
    report = RunReport(
        extensions=(
            _metrics("md", 3, 2, 0.0, 1.0),
            _metrics("txt", 2, 0, 1.0, 2.0, ExtensionStatus.CANCELLED),
        ),
        start_time=0.0,
        end_time=2.0,
        status="cancelled",
    )
    text = format_performance_report(report)
    assert "[cancelled]" in text
    assert "Operation cancelled" in text


def test_color_report_uses_ansi_and_plain_does_not():
    assert "\x1b[" in format_performance_report(_report(), color=True)
    assert "\x1b[" not in format_performance_report(_report(), color=False)


def test_log_performance_report(caplog):
    caplog.set_level(logging.INFO, logger="file_assoc.pipeline.report")
    log_performance_report(_report())
    assert any(r.getMessage().startswith("TOTAL") for r in caplog.records)


def test_summary_line_for_empty_report():
    report = RunReport(extensions=(), start_time=0.0, end_time=0.0)
    assert format_summary_line(report) == "Processed 0 files in 0.00s (0.0 files/s)"


def test_format_sample_result_variants():
    exhaustive = SampleResult("md", 3, 2, 3, True, exhaustive=True)
    assert format_sample_result(exhaustive) == (
        ".md: 2/3 files have overrides (exhaustive) - processing"
    )

    partial = SampleResult("log", 50, 0, 200, False)
    text = format_sample_result(partial)
    assert "0/50 sampled" in text
    assert "confidence High" in text
    assert text.endswith("skipping")

    empty = SampleResult("csv", 0, 0, 0, False, exhaustive=True)
    assert format_sample_result(empty) == ".csv: no files found"
