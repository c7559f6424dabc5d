# file_assoc/pipeline/orchestrate.py
from __future__ import annotations

import logging
import random
import signal
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from setproctitle import setproctitle
from tqdm import tqdm

from file_assoc.config import ResetConfig, validate_config
from file_assoc.errors import (
    EXIT_CANCELLED,
    EXIT_OK,
    EXIT_RUN_ERROR,
    CancellationError,
    ResourceLimitError,
    RunError,
    WorkerError,
)
from file_assoc.io.walk import task_source
from file_assoc.io.xattrs import XattrStore
from file_assoc.parallel.dispatcher import Dispatcher, select_dispatcher
from file_assoc.parallel.throttle import MemoryGuard, SlidingWindowRateLimiter
from file_assoc.parallel.types import FileTask, RunOutcome, TaskResult
from file_assoc.pipeline.report import (
    format_sample_result,
    log_performance_report,
    log_run_summary,
    print_performance_report,
    print_run_summary,
)
from file_assoc.pipeline.worker import AttributeStore, make_mutate_fn
from file_assoc.tracking.metrics import ExtensionStatus, MetricsAggregator, RunReport
from file_assoc.tracking.sampling import SampleResult, Sampler

logger = logging.getLogger(__name__)

__all__ = ["RunState", "RunResult", "ResetRun", "reset_file_associations"]


class RunState(str, Enum):
    INIT = "init"
    VALIDATING = "validating"
    SAMPLING = "sampling"
    DECIDING = "deciding"
    SKIPPED = "skipped"
    DISPATCHING = "dispatching"
    RECORDING = "recording"
    REPORTING = "reporting"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass
class RunResult:
    report: RunReport
    exit_code: int
    state: RunState
    error: Optional[Exception] = None
    samples: Dict[str, SampleResult] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.exit_code == EXIT_OK


class _Budget:
    """Run-wide max-files counter shared across extension batches."""

    def __init__(self, limit: int):
        self.limit = limit
        self.used = 0
        self.hit = False

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    def take(self, tasks: Iterable[FileTask]) -> Iterator[FileTask]:
        for task in tasks:
            if self.used >= self.limit:
                self.hit = True
                return
            self.used += 1
            yield task


@contextmanager
def _signal_handlers(event: threading.Event, enabled: bool = True):
    """Route SIGINT/SIGTERM to ``event`` while the run is active (main thread only)."""
    if not enabled or threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(signum, frame):
        if not event.is_set():
            logger.warning("Received %s, finishing in-flight work", signal.Signals(signum).name)
        event.set()

    previous = {
        sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        yield
    finally:
        for sig, prev in previous.items():
            signal.signal(sig, prev)


class ResetRun:
    """
    One reset pass over every configured extension.

    States advance INIT -> VALIDATING -> per extension (SAMPLING ->
    DECIDING -> SKIPPED | DISPATCHING -> RECORDING) -> REPORTING -> DONE.
    CANCELLED is reachable from any state; it stops dispatch, lets
    in-flight chunks finish and still emits the partial report.
    """

    def __init__(
        self,
        config: ResetConfig,
        *,
        store: Optional[AttributeStore] = None,
        dispatcher: Optional[Dispatcher] = None,
        aggregator: Optional[MetricsAggregator] = None,
        memory_guard: Optional[MemoryGuard] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        install_signals: bool = True,
        echo: bool = True,
        color: Optional[bool] = None,
        log_path: Optional[Path] = None,
    ):
        self.config = config
        self.store = store if store is not None else XattrStore()
        self.worker_config = config.worker_config()
        self.dispatcher = dispatcher or select_dispatcher(
            self.worker_config, use_parallel=config.use_parallel
        )
        self.metrics = aggregator or MetricsAggregator()
        self.memory_guard = memory_guard or MemoryGuard(config.max_memory_mb)
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter.maybe(config.max_rate)
        self.install_signals = install_signals
        self.echo = echo
        self.color = sys.stdout.isatty() if color is None else color
        self.log_path = log_path

        self.state = RunState.INIT
        self.samples: Dict[str, SampleResult] = {}
        self._cancel = threading.Event()
        self._budget = _Budget(config.max_files)
        self._current: Optional[str] = None
        self._transitions: List[RunState] = [RunState.INIT]
        self._rng = random.Random(config.random_seed)

    # -- control ----------------------------------------------------------

    def cancel(self) -> None:
        """Request cancellation; safe from signal handlers and other threads."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def transitions(self) -> List[RunState]:
        return list(self._transitions)

    def _enter(self, state: RunState) -> None:
        if self.state is RunState.CANCELLED:
            return
        self.state = state
        self._transitions.append(state)
        logger.debug("State -> %s", state.value)

    def _should_stop(self) -> bool:
        return self._cancel.is_set() or self.memory_guard.exceeded()

    def _interruptible(self, tasks: Iterable[FileTask]) -> Iterator[FileTask]:
        for task in tasks:
            if self._cancel.is_set():
                raise CancellationError("Interrupted during file discovery")
            yield task

    # -- main loop --------------------------------------------------------

    def run(self) -> RunResult:
        """Execute the run. Raises ValidationError before any processing."""
        with _signal_handlers(self._cancel, self.install_signals):
            self._enter(RunState.VALIDATING)
            root = validate_config(self.config)
            extensions = self.config.effective_extensions

            setproctitle("file-assoc:main")
            self._summarize(root, extensions)

            status, exit_code, error = self._process_all(root, extensions)

            # an interrupt from here on only lets the report finish
            self._enter(RunState.REPORTING)
            report = self.metrics.report(
                parallel=self.dispatcher.mode == "parallel", status=status
            )
            self._emit(report)
            self._enter(RunState.DONE)

        final = RunState.CANCELLED if status == "cancelled" else RunState.DONE
        return RunResult(
            report=report,
            exit_code=exit_code,
            state=final,
            error=error,
            samples=dict(self.samples),
        )

    def _process_all(
        self, root: Path, extensions: Sequence[str]
    ) -> Tuple[str, int, Optional[Exception]]:
        try:
            for ext in extensions:
                if self._cancel.is_set():
                    raise CancellationError(f"Interrupted before processing .{ext}")
                if self._budget.remaining == 0 and self._has_files(root, ext):
                    self._budget.hit = True
                    break
                self._process_extension(root, ext)
                if self._budget.hit:
                    break
        except CancellationError as exc:
            self._close_current(ExtensionStatus.CANCELLED)
            self._enter(RunState.CANCELLED)
            logger.warning("Operation cancelled: %s", exc)
            return "cancelled", EXIT_CANCELLED, exc
        except WorkerError as exc:
            self._close_current(ExtensionStatus.PARTIAL)
            logger.error("Run halted: %s", exc)
            return "partial", EXIT_RUN_ERROR, exc
        except ResourceLimitError as exc:
            self._close_current(ExtensionStatus.PARTIAL)
            logger.error("Run stopped: %s", exc)
            return "failed", EXIT_RUN_ERROR, exc

        if self._budget.hit:
            logger.warning(
                "Max files limit reached (%d); remaining extensions not processed",
                self.config.max_files,
            )
            return "limited", EXIT_OK, None
        return "completed", EXIT_OK, None

    def _close_current(self, status: ExtensionStatus) -> None:
        if self._current is not None and self.metrics.is_open(self._current):
            self.metrics.finalize(self._current, status)
        self._current = None

    def _source(self, root: Path, ext: str) -> Callable[[], Iterator[FileTask]]:
        cfg = self.config
        return task_source(
            root, ext, cfg.exclude_patterns, include_hidden=cfg.include_hidden
        )

    def _has_files(self, root: Path, ext: str) -> bool:
        return next(iter(self._source(root, ext)()), None) is not None

    def _process_extension(self, root: Path, ext: str) -> None:
        cfg = self.config
        source = self._source(root, ext)
        self._current = ext
        self.metrics.start(ext)
        logger.info("Processing .%s files", ext)

        sample: Optional[SampleResult] = None
        if not cfg.skip_sampling:
            self._enter(RunState.SAMPLING)
            sampler = Sampler(
                self.store.check,
                min_sample_size=cfg.min_sample_size,
                rng=self._rng,
            )
            sample = sampler.sample(ext, self._interruptible(source()), cfg.sample_size)
            self.samples[ext] = sample
            self.metrics.record_sample(ext, sample)
            if self.echo and cfg.verbose:
                print(format_sample_result(sample))

            self._enter(RunState.DECIDING)
            if sample.population == 0:
                logger.info("No .%s files found", ext)
                self.metrics.finalize(ext, ExtensionStatus.EMPTY)
                self._current = None
                return
            if not sample.worth_processing:
                self._enter(RunState.SKIPPED)
                logger.info(
                    "Skipping .%s: no overrides in %d sampled files",
                    ext,
                    sample.sampled,
                )
                self.metrics.finalize(ext, ExtensionStatus.SKIPPED)
                self._current = None
                return
            if sample.population > self._budget.remaining:
                logger.warning(
                    ".%s: %d files (~%d with overrides) exceed the remaining max files "
                    "budget of %d (limit %d); the run will stop early",
                    ext,
                    sample.population,
                    sample.estimated_total,
                    self._budget.remaining,
                    cfg.max_files,
                )

        self._enter(RunState.DISPATCHING)
        outcome = self._dispatch(ext, source, sample)

        self._enter(RunState.RECORDING)
        if outcome.halted:
            raise WorkerError(
                f".{ext}: worker failed; {len(outcome.unprocessed)} files left unprocessed",
                outcome,
            )
        if outcome.stopped:
            if self._cancel.is_set():
                raise CancellationError(f"Interrupted while processing .{ext}")
            raise ResourceLimitError(
                f"Memory limit exceeded ({self.memory_guard.last_mb:.0f}MB > "
                f"{cfg.max_memory_mb}MB) while processing .{ext}",
                outcome,
            )

        if self._budget.hit:
            status = ExtensionStatus.LIMITED
        elif outcome.processed == 0:
            status = ExtensionStatus.EMPTY
        else:
            status = ExtensionStatus.COMPLETED
        m = self.metrics.finalize(ext, status)
        self._current = None
        logger.info(
            ".%s: %d files, %d with overrides, %d cleared, %d errors (%.2fs)",
            ext,
            m.files_total,
            m.files_with_override,
            m.files_cleared,
            m.errors,
            m.duration,
        )

    def _dispatch(
        self,
        ext: str,
        source: Callable[[], Iterator[FileTask]],
        sample: Optional[SampleResult],
    ) -> RunOutcome:
        total = None
        if sample is not None:
            total = min(sample.population, self._budget.remaining)

        tasks = self._budget.take(source())
        mutate_fn = make_mutate_fn(self.store, dry_run=self.config.dry_run)

        with tqdm(
            total=total,
            desc=f".{ext}",
            unit="files",
            colour="blue",
            disable=not (self.echo and self.config.verbose),
            leave=False,
        ) as pbar:

            def on_result(result: TaskResult) -> None:
                self.metrics.record(ext, result)
                pbar.update(1)

            return self.dispatcher.run(
                tasks,
                mutate_fn,
                self.worker_config,
                on_result=on_result,
                should_stop=self._should_stop,
                rate_limiter=self.rate_limiter,
            )

    # -- output -----------------------------------------------------------

    def _summarize(self, root: Path, extensions: Sequence[str]) -> None:
        cfg = self.config
        kind = self.dispatcher.mode
        if kind == "parallel":
            kind = "threads" if cfg.use_threads else "processes"
        summary: Dict[str, Any] = dict(
            root=root,
            extensions=extensions,
            workers=self.worker_config.worker_count if kind != "sequential" else 1,
            executor_name=kind,
            start_time=datetime.now(),
            dry_run=cfg.dry_run,
            sample_size=None if cfg.skip_sampling else cfg.sample_size,
            max_files=cfg.max_files,
            max_rate=cfg.max_rate,
            max_memory_mb=cfg.max_memory_mb,
            chunk_size=cfg.chunk_size,
            log_path=self.log_path,
        )
        if self.echo:
            print_run_summary(color=self.color, **summary)
        log_run_summary(**summary)

    def _emit(self, report: RunReport) -> None:
        if self.echo:
            print_performance_report(report, color=self.color)
        log_performance_report(report)


def reset_file_associations(
    config: Optional[ResetConfig] = None,
    *,
    store: Optional[AttributeStore] = None,
    dispatcher: Optional[Dispatcher] = None,
    install_signals: bool = True,
    echo: bool = True,
    color: Optional[bool] = None,
    log_path: Optional[Path] = None,
    **overrides: Any,
) -> RunResult:
    """
    Reset LaunchServices overrides under ``config.root``.

    Process
    -------
    1. Validate the configuration (raises ValidationError)
    2. For each extension: sample, then skip or dispatch to workers
    3. Record per-file results into the metrics aggregator
    4. Print and log the performance report

    Keyword overrides are applied on top of ``config`` (or the
    environment when no config is given). Run errors and cancellation are
    returned in the RunResult rather than raised.
    """
    if config is None:
        config = ResetConfig.from_env(**overrides)
    elif overrides:
        config = config.with_overrides(**overrides)

    run = ResetRun(
        config,
        store=store,
        dispatcher=dispatcher,
        install_signals=install_signals,
        echo=echo,
        color=color,
        log_path=log_path,
    )
    result = run.run()
    if result.error is not None and isinstance(result.error, RunError):
        logger.error("Finished with errors (exit code %d)", result.exit_code)
    return result
