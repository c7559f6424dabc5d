# tests/conftest.py
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Set

import pytest

from file_assoc.errors import FileMissingError, FilePermissionError


class MemoryStore:
    """
    In-memory attribute store keyed by path.

    Records every call so tests can assert which operations ran. Paths in
    ``missing`` raise not-found, paths in ``denied`` raise permission-denied.
    """

    def __init__(self, present: Iterable[str] = ()):
        self.present: Set[str] = set(str(p) for p in present)
        self.missing: Set[str] = set()
        self.denied: Set[str] = set()
        self.checks: List[str] = []
        self.clears: List[str] = []
        self._lock = threading.Lock()

    def _guard(self, path: str) -> None:
        if path in self.missing:
            raise FileMissingError(path)
        if path in self.denied:
            raise FilePermissionError(path)

    def check(self, path: str) -> bool:
        with self._lock:
            self.checks.append(path)
            self._guard(path)
            return path in self.present

    def clear(self, path: str) -> bool:
        with self._lock:
            self.clears.append(path)
            self._guard(path)
            if path in self.present:
                self.present.discard(path)
                return True
            return False


def make_tree(root: Path, files: Dict[str, int]) -> List[Path]:
    """Create ``count`` empty files per extension: {"md": 3} -> f000.md ..."""
    root = root.resolve()
    created = []
    for ext, count in files.items():
        for i in range(count):
            p = root / f"f{i:03d}.{ext}"
            p.write_text("x")
            created.append(p)
    return created


@pytest.fixture()
def memory_store():
    return MemoryStore()


@pytest.fixture()
def clean_root_handlers():
    """Start each test with a clean root logger; restore afterwards."""
    root = logging.getLogger()
    prev = list(root.handlers)
    prev_level = root.level
    try:
        for h in list(root.handlers):
            root.removeHandler(h)
        yield
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            try:
                h.close()
            except Exception:
                pass
        for h in prev:
            root.addHandler(h)
        root.setLevel(prev_level)
