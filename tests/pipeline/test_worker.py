# tests/pipeline/test_worker.py
from __future__ import annotations

import logging
import pickle

from conftest import MemoryStore

from file_assoc.io.xattrs import XattrStore
from file_assoc.parallel.types import FileTask, TaskStatus
from file_assoc.pipeline.worker import make_mutate_fn, process_file


def _task(path="/r/a.md"):
    return FileTask(path=path, extension="md")


def test_clear_reports_presence_and_is_idempotent():
    store = MemoryStore(["/r/a.md"])
    first = process_file(_task(), store)
    second = process_file(_task(), store)

    assert first.status is TaskStatus.CLEARED and first.had_override
    assert second.status is TaskStatus.SKIPPED and not second.had_override
    assert store.checks == []  # real runs go straight to clear


def test_dry_run_never_clears():
    store = MemoryStore(["/r/a.md"])
    res = process_file(_task(), store, dry_run=True)
    assert res.status is TaskStatus.WOULD_CLEAR
    assert res.had_override
    assert store.clears == []
    assert "/r/a.md" in store.present


def test_per_file_errors_become_results(caplog):
    store = MemoryStore()
    store.missing.add("/r/gone.md")
    store.denied.add("/r/locked.md")

    with caplog.at_level(logging.WARNING, logger="file_assoc.pipeline.worker"):
        gone = process_file(_task("/r/gone.md"), store)
        locked = process_file(_task("/r/locked.md"), store, dry_run=True)

    assert (gone.status, gone.error) == (TaskStatus.ERROR, "not-found")
    assert (locked.status, locked.error) == (TaskStatus.ERROR, "permission-denied")
    assert not gone.ok
    assert "not-found: /r/gone.md" in caplog.text


def test_mutate_fn_binds_store_and_pickles():
    fn = make_mutate_fn(XattrStore(), dry_run=True)
    clone = pickle.loads(pickle.dumps(fn))
    assert clone.keywords["dry_run"] is True
    assert isinstance(clone.keywords["store"], XattrStore)
