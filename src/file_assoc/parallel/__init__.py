"""Task types, throttling and dispatch for parallel processing."""

from .types import FileTask, TaskStatus, TaskResult, RunOutcome
from .throttle import SlidingWindowRateLimiter, MemoryGuard
from .dispatcher import Dispatcher, ParallelExecutor, SequentialExecutor, select_dispatcher

__all__ = [
    "FileTask",
    "TaskStatus",
    "TaskResult",
    "RunOutcome",
    "SlidingWindowRateLimiter",
    "MemoryGuard",
    "Dispatcher",
    "ParallelExecutor",
    "SequentialExecutor",
    "select_dispatcher",
]
