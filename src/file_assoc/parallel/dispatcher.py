# parallel/dispatcher.py
"""Chunked dispatch of per-file work across a worker pool."""

from __future__ import annotations

import logging
import signal
from abc import ABC, abstractmethod
from concurrent.futures import (
    FIRST_COMPLETED,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    wait,
)
from itertools import islice
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Type

from setproctitle import setproctitle

from file_assoc.config import WorkerConfig
from file_assoc.parallel.throttle import SlidingWindowRateLimiter
from file_assoc.parallel.types import FileTask, RunOutcome, TaskResult, TaskStatus

logger = logging.getLogger(__name__)

__all__ = [
    "Dispatcher",
    "ParallelExecutor",
    "SequentialExecutor",
    "select_dispatcher",
    "chunked",
    "run_chunk",
]

MutateFn = Callable[[FileTask], TaskResult]
ResultCallback = Callable[[TaskResult], None]
StopCheck = Callable[[], bool]

WORKER_ERROR = "worker-error"


def chunked(tasks: Iterable[FileTask], size: int) -> Iterator[List[FileTask]]:
    """Split a (lazy) task stream into lists of at most ``size`` tasks."""
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")
    it = iter(tasks)
    while True:
        chunk = list(islice(it, size))
        if not chunk:
            return
        yield chunk


def run_chunk(mutate_fn: MutateFn, chunk: List[FileTask]) -> List[TaskResult]:
    """Process one chunk in order. Runs inside the worker."""
    return [mutate_fn(task) for task in chunk]


def _init_worker() -> None:
    """Process-pool initializer: label the process, leave signals to the parent."""
    setproctitle("file-assoc:worker")
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    signal.signal(signal.SIGTERM, signal.SIG_IGN)


def _failed(chunk: Iterable[FileTask]) -> List[TaskResult]:
    return [
        TaskResult(task=t, status=TaskStatus.ERROR, error=WORKER_ERROR)
        for t in chunk
    ]


class Dispatcher(ABC):
    """
    Runs ``mutate_fn`` over a task stream and returns a RunOutcome.

    Both implementations honour the same contract: every task either
    appears once in ``outcome.results`` (and is passed once to
    ``on_result``) or is left unprocessed because dispatch stopped.
    Callers never need to know which implementation ran.
    """

    mode = "abstract"

    @staticmethod
    def available(use_threads: bool = False) -> bool:
        return True

    @abstractmethod
    def run(
        self,
        tasks: Iterable[FileTask],
        mutate_fn: MutateFn,
        config: WorkerConfig,
        *,
        on_result: Optional[ResultCallback] = None,
        should_stop: Optional[StopCheck] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
    ) -> RunOutcome:
        ...

    @staticmethod
    def _limiter(
        config: WorkerConfig, rate_limiter: Optional[SlidingWindowRateLimiter]
    ) -> Optional[SlidingWindowRateLimiter]:
        if rate_limiter is not None:
            return rate_limiter
        return SlidingWindowRateLimiter.maybe(config.max_rate_per_second)


class SequentialExecutor(Dispatcher):
    """Process tasks one at a time in the calling thread."""

    mode = "sequential"

    def run(
        self,
        tasks: Iterable[FileTask],
        mutate_fn: MutateFn,
        config: WorkerConfig,
        *,
        on_result: Optional[ResultCallback] = None,
        should_stop: Optional[StopCheck] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
    ) -> RunOutcome:
        outcome = RunOutcome(mode=self.mode)
        limiter = self._limiter(config, rate_limiter)
        it = iter(tasks)

        for task in it:
            if should_stop is not None and should_stop():
                outcome.stopped = True
                break
            if limiter is not None:
                limiter.acquire()

            try:
                result = mutate_fn(task)
            except Exception as exc:
                msg = f"{task.path}: {exc!r}"
                outcome.worker_errors.append(msg)
                if config.halt_on_error:
                    logger.error("Worker failed, halting dispatch: %s", msg)
                    outcome.halted = True
                    outcome.unprocessed.append(task)
                    outcome.unprocessed.extend(it)
                    break
                logger.error("Worker failed: %s", msg)
                result = _failed([task])[0]

            outcome.results.append(result)
            if on_result is not None:
                on_result(result)

        return outcome


class ParallelExecutor(Dispatcher):
    """
    Distribute chunks of tasks across a bounded pool of workers.

    Notes
    -----
    - At most ``2 * worker_count`` chunks are in flight, so a stop request
      or a halt takes effect after the in-flight chunks complete.
    - Task order inside a chunk is preserved by the worker. Across chunks,
      results stream in completion order unless ``preserve_order`` is set,
      in which case they are buffered and emitted in input order.
    - Rate limiting applies to submission: a chunk is submitted only once
      its tasks fit within the sliding window.
    """

    mode = "parallel"

    def __init__(self, executor_class: Optional[Type] = None):
        self.executor_class = executor_class

    @staticmethod
    def available(use_threads: bool = False) -> bool:
        if use_threads:
            return True
        # sem_open is missing on some platforms; process pools need it
        try:
            import multiprocessing.synchronize  # noqa: F401
        except ImportError:
            return False
        return True

    def run(
        self,
        tasks: Iterable[FileTask],
        mutate_fn: MutateFn,
        config: WorkerConfig,
        *,
        on_result: Optional[ResultCallback] = None,
        should_stop: Optional[StopCheck] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
    ) -> RunOutcome:
        outcome = RunOutcome(mode=self.mode)
        limiter = self._limiter(config, rate_limiter)

        executor_class = self.executor_class
        if executor_class is None:
            executor_class = ThreadPoolExecutor if config.use_threads else ProcessPoolExecutor
        pool_kwargs = {}
        if executor_class is ProcessPoolExecutor:
            pool_kwargs["initializer"] = _init_worker

        max_inflight = max(1, config.worker_count * 2)
        pending: Dict[Future, Tuple[int, List[FileTask]]] = {}
        buffered: Dict[int, List[TaskResult]] = {}
        next_emit = 0
        halting = False
        stopping = False

        def emit(results: List[TaskResult]) -> None:
            for res in results:
                outcome.results.append(res)
                if on_result is not None:
                    on_result(res)

        def chunk_failed(idx: int, chunk: List[FileTask], exc: BaseException) -> List[TaskResult]:
            nonlocal halting
            msg = f"chunk {idx} ({len(chunk)} files) failed: {exc!r}"
            outcome.worker_errors.append(msg)
            if config.halt_on_error:
                logger.error("Worker failed, halting dispatch: %s", msg)
                halting = True
                outcome.unprocessed.extend(chunk)
                return []
            logger.error("Worker failed, recording its files as errors: %s", msg)
            return _failed(chunk)

        def collect(idx: int, chunk: List[FileTask], results: List[TaskResult]) -> None:
            nonlocal next_emit
            if not config.preserve_order:
                emit(results)
                return
            buffered[idx] = results
            while next_emit in buffered:
                emit(buffered.pop(next_emit))
                next_emit += 1

        chunks = enumerate(chunked(tasks, config.chunk_size))
        exhausted = False

        with executor_class(max_workers=config.worker_count, **pool_kwargs) as executor:
            while True:
                while not (exhausted or halting or stopping) and len(pending) < max_inflight:
                    if should_stop is not None and should_stop():
                        stopping = True
                        break
                    nxt = next(chunks, None)
                    if nxt is None:
                        exhausted = True
                        break
                    idx, chunk = nxt
                    if limiter is not None:
                        limiter.acquire(len(chunk))
                    try:
                        fut = executor.submit(run_chunk, mutate_fn, chunk)
                    except Exception as exc:
                        collect(idx, chunk, chunk_failed(idx, chunk, exc))
                        continue
                    pending[fut] = (idx, chunk)

                if not pending:
                    break

                done, _ = wait(list(pending), return_when=FIRST_COMPLETED)
                for fut in sorted(done, key=lambda f: pending[f][0]):
                    idx, chunk = pending.pop(fut)
                    try:
                        results = fut.result()
                    except Exception as exc:
                        results = chunk_failed(idx, chunk, exc)
                    collect(idx, chunk, results)

        if halting:
            outcome.halted = True
            for _, chunk in chunks:
                outcome.unprocessed.extend(chunk)
        outcome.stopped = stopping
        return outcome


def select_dispatcher(config: WorkerConfig, use_parallel: bool = True) -> Dispatcher:
    """
    Choose the dispatcher once per run.

    Parallel dispatch is used when requested, more than one worker is
    configured and the platform supports the pool; otherwise sequential.
    """
    if use_parallel and config.worker_count > 1:
        if ParallelExecutor.available(config.use_threads):
            kind = "threads" if config.use_threads else "processes"
            logger.info("Parallel dispatch: %d workers (%s)", config.worker_count, kind)
            return ParallelExecutor()
        logger.warning("Process pools unavailable on this platform; using sequential dispatch")
    else:
        logger.info("Sequential dispatch")
    return SequentialExecutor()
