# file_assoc/pipeline/worker.py
from __future__ import annotations

import logging
from functools import partial
from typing import Callable, Protocol

from file_assoc.errors import PerFileError
from file_assoc.parallel.types import FileTask, TaskResult, TaskStatus

logger = logging.getLogger(__name__)

__all__ = ["AttributeStore", "process_file", "make_mutate_fn"]


class AttributeStore(Protocol):
    def check(self, path: str) -> bool: ...

    def clear(self, path: str) -> bool: ...


def process_file(task: FileTask, store: AttributeStore, dry_run: bool = False) -> TaskResult:
    """
    Reset one file's override.

    Dry runs only ``check``; real runs go straight to ``clear``, which
    reports whether the attribute had been present. Per-file failures come
    back as ERROR results rather than exceptions.
    """
    try:
        if dry_run:
            present = store.check(task.path)
            status = TaskStatus.WOULD_CLEAR if present else TaskStatus.SKIPPED
        else:
            present = store.clear(task.path)
            status = TaskStatus.CLEARED if present else TaskStatus.SKIPPED
    except PerFileError as exc:
        logger.warning("%s: %s", exc.kind, task.path)
        return TaskResult(task=task, status=TaskStatus.ERROR, error=exc.kind)

    return TaskResult(task=task, status=status, had_override=present)


def make_mutate_fn(store: AttributeStore, dry_run: bool = False) -> Callable[[FileTask], TaskResult]:
    """Bind a store into a picklable per-task callable for the dispatcher."""
    return partial(process_file, store=store, dry_run=dry_run)
