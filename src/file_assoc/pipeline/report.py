# file_assoc/pipeline/report.py
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from file_assoc.tracking.metrics import ExtensionMetrics, ExtensionStatus, RunReport
from file_assoc.tracking.sampling import SampleResult
from file_assoc.utilities.display import colorize, format_banner, format_rate, truncate_path_to_fit

logger = logging.getLogger(__name__)

ROW_FORMAT = "{name:<16} {files:>8} {attrs:>8} {duration:>10} {rate:>9}"
RULE = "-" * 60


def _abbrev(s: str, width: int = 96) -> str:
    """Return s truncated with an ellipsis if it exceeds width."""
    return s if len(s) <= width else (s[: max(0, width - 1)] + "…")


def format_run_summary(
    *,
    root: str | Path,
    extensions: Sequence[str],
    workers: int,
    executor_name: str,
    start_time: datetime,
    dry_run: bool = False,
    sample_size: Optional[int] = None,
    max_files: Optional[int] = None,
    max_rate: Optional[int] = None,
    max_memory_mb: Optional[int] = None,
    chunk_size: Optional[int] = None,
    log_path: Optional[str | Path] = None,
    color: bool = True,
) -> str:
    """
    Build a formatted, human-readable summary of the planned run.
    """
    heading = f"Start Time: {start_time:%Y-%m-%d %H:%M:%S}"
    if color:
        heading = colorize(heading, "red")

    ext_list = ", ".join(f".{e}" for e in extensions) or "None"

    lines = [
        heading,
        colorize("Reset Configuration", "underline", color),
        f"Target directory:           {truncate_path_to_fit(root, 'Target directory:           ')}",
        f"{f'Extensions ({len(extensions)}):':<28}{_abbrev(ext_list)}",
        f"Mode:                       {'DRY RUN (no changes)' if dry_run else 'LIVE'}",
    ]

    if sample_size is not None:
        lines.append(f"Sample size:                {sample_size}")
    else:
        lines.append("Sample size:                sampling disabled")
    if max_files is not None:
        lines.append(f"Max files:                  {max_files:,}")
    lines.append(
        f"Max rate:                   {f'{max_rate}/s' if max_rate else 'unthrottled'}"
    )
    if max_memory_mb is not None:
        lines.append(f"Max memory:                 {max_memory_mb}MB")
    if chunk_size is not None:
        lines.append(f"Chunk size:                 {chunk_size}")

    lines.append(f"Worker processes/threads:   {workers} ({executor_name})")
    if log_path is not None:
        lines.append(f"Log file:                   {log_path}")
    return "\n".join(lines) + "\n"


def print_run_summary(**kwargs) -> None:
    """Print the run summary to stdout (CLI usage)."""
    print(format_run_summary(**kwargs), end="")


def log_run_summary(*, color: bool = False, **kwargs) -> None:
    """Log the run summary at INFO level (pipelines using logging)."""
    summary = format_run_summary(color=color, **kwargs)
    for line in summary.rstrip("\n").splitlines():
        logger.info(line)


def format_sample_result(sample: SampleResult) -> str:
    """One-line description of a sampler verdict."""
    if sample.population == 0:
        return f".{sample.extension}: no files found"
    verdict = "processing" if sample.worth_processing else "skipping"
    if sample.exhaustive:
        return (
            f".{sample.extension}: {sample.with_override}/{sample.sampled} files "
            f"have overrides (exhaustive) - {verdict}"
        )
    return (
        f".{sample.extension}: {sample.with_override}/{sample.sampled} sampled "
        f"({sample.hit_rate:.1f}%), ~{sample.estimated_total} of "
        f"{sample.population} estimated, confidence {sample.confidence} - {verdict}"
    )


def _row_color(m: ExtensionMetrics) -> Optional[str]:
    if m.status is ExtensionStatus.CANCELLED or m.status is ExtensionStatus.PARTIAL:
        return "yellow"
    if m.files_total == 0:
        return None
    if m.rate > 50:
        return "green"
    if m.rate > 10:
        return "yellow"
    return "red"


def _row(name: str, files: int, attrs: int, duration: float, rate: float) -> str:
    return ROW_FORMAT.format(
        name=name,
        files=files,
        attrs=attrs,
        duration=f"{duration:.2f}s",
        rate=f"{format_rate(rate)}/s",
    )


def format_extension_row(m: ExtensionMetrics, color: bool = False) -> str:
    line = _row(f".{m.extension}", m.files_total, m.files_with_override, m.duration, m.rate)
    if m.status is not ExtensionStatus.COMPLETED:
        line = f"{line}  [{m.status.value}]"
    c = _row_color(m)
    return colorize(line, c, color) if c else line


def format_summary_line(report: RunReport) -> str:
    return (
        f"Processed {report.total_files} files in {report.total_duration:.2f}s "
        f"({format_rate(report.rate)} files/s)"
    )


def format_performance_report(report: RunReport, *, color: bool = False, top: int = 5) -> str:
    """
    Render the per-extension table, TOTAL row and fastest/slowest rankings.

    Line-oriented text for the console and the log; not a stable
    machine-readable format.
    """
    lines: List[str] = [
        "",
        colorize(format_banner("Performance Report", width=55), "blue", color),
        "",
    ]
    header = ROW_FORMAT.format(
        name="Extension", files="Files", attrs="w/Attrs", duration="Duration", rate="Rate"
    )
    lines.append(colorize(header, "cyan", color))
    lines.append(RULE)

    for m in report.extensions:
        lines.append(format_extension_row(m, color))

    lines.append(RULE)
    lines.append("")
    total = _row(
        "TOTAL",
        report.total_files,
        report.total_with_override,
        report.total_duration,
        report.rate,
    )
    lines.append(colorize(total, "cyan", color))
    if report.total_cleared or report.total_errors:
        lines.append(f"Cleared: {report.total_cleared}  Errors: {report.total_errors}")

    fastest = report.fastest(top)
    if fastest:
        lines.append("")
        lines.append(colorize(f"Top {top} Fastest:", "cyan", color))
        for m in fastest:
            lines.append(colorize(f"  .{m.extension:<15} {format_rate(m.rate):>7} files/s", "green", color))
        lines.append("")
        lines.append(colorize(f"Top {top} Slowest:", "cyan", color))
        for m in report.slowest(top):
            lines.append(colorize(f"  .{m.extension:<15} {format_rate(m.rate):>7} files/s", "red", color))

    lines.append("")
    if report.cancelled:
        lines.append(colorize("Operation cancelled: report is partial", "yellow", color))
    lines.append(format_summary_line(report))
    return "\n".join(lines) + "\n"


def print_performance_report(report: RunReport, color: bool = True) -> None:
    print(format_performance_report(report, color=color), end="")


def log_performance_report(report: RunReport) -> None:
    for line in format_performance_report(report, color=False).rstrip("\n").splitlines():
        if line:
            logger.info(line)
