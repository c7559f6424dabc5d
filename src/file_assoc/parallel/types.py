# parallel/types.py
"""Shared types for parallel processing."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

__all__ = ["FileTask", "TaskStatus", "TaskResult", "RunOutcome"]


@dataclass(frozen=True)
class FileTask:
    """One candidate file, owned by exactly one worker invocation."""

    path: str
    """Absolute or root-relative path to the file"""

    extension: str
    """Normalized extension (no leading dot) the file was matched under"""


class TaskStatus(str, Enum):
    CLEARED = "cleared"
    WOULD_CLEAR = "would-clear"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass(frozen=True)
class TaskResult:
    """Outcome of processing one FileTask."""

    task: FileTask
    status: TaskStatus
    had_override: bool = False
    error: Optional[str] = None
    """Error kind (``not-found``, ``permission-denied``, ...) when status is ERROR"""

    @property
    def ok(self) -> bool:
        return self.status is not TaskStatus.ERROR

    def __str__(self) -> str:
        return f"{self.status.value}:{self.task.path}"


@dataclass
class RunOutcome:
    """Results of one dispatch, in emission order."""

    results: List[TaskResult] = field(default_factory=list)
    unprocessed: List[FileTask] = field(default_factory=list)
    worker_errors: List[str] = field(default_factory=list)
    halted: bool = False  # stopped by halt-on-error
    stopped: bool = False  # stopped by the caller (cancel / resource limit)
    mode: str = "sequential"

    @property
    def partial(self) -> bool:
        return self.halted or self.stopped or bool(self.unprocessed)

    @property
    def processed(self) -> int:
        return len(self.results)
