# file_assoc/io/walk.py
from __future__ import annotations

import logging
import os
from fnmatch import fnmatch
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Sequence, Tuple, Union

from file_assoc.config import normalize_extension, normalize_extensions
from file_assoc.parallel.types import FileTask

logger = logging.getLogger(__name__)

__all__ = [
    "enumerate_files",
    "task_source",
    "count_files",
    "get_extension",
    "is_excluded",
]


def is_excluded(name: str, patterns: Sequence[str], include_hidden: bool = False) -> bool:
    """True if a directory or file name matches an ignore pattern."""
    if not include_hidden and name.startswith(".") and name not in (".", ".."):
        return True
    return any(fnmatch(name, pat) for pat in patterns)


def get_extension(name: str, extensions: Sequence[str]) -> Optional[str]:
    """
    Return the longest extension in ``extensions`` that ``name`` ends with.

    Matching is suffix-based, so dotfiles such as ``.env`` match ``env``.
    """
    best: Optional[str] = None
    for ext in extensions:
        if name.endswith("." + ext) and (best is None or len(ext) > len(best)):
            best = ext
    return best


def enumerate_files(
    root: Union[str, Path],
    extensions: Iterable[str],
    exclude_patterns: Sequence[str] = (),
    *,
    include_hidden: bool = False,
) -> Iterator[FileTask]:
    """
    Lazily yield a FileTask for every regular file under ``root`` matching
    one of ``extensions``.

    Notes
    -----
    - Excluded and hidden directories are pruned before descending, so
      their contents are never visited.
    - Exclusion patterns also apply to file names, ahead of the extension
      filter. Hidden *files* are kept (dotfiles like ``.env`` are targets).
    - Symlinks (to files or directories) are never followed.
    - Order is directory-walk order; names are sorted within a directory so
      repeated walks over an unchanged tree yield the same sequence.
    - Single pass: call again to walk again.
    """
    exts: Tuple[str, ...] = normalize_extensions(extensions)
    if not exts:
        return

    def _on_error(exc: OSError) -> None:
        logger.warning("Cannot read directory %s: %s", exc.filename, exc.strerror)

    for dirpath, dirnames, filenames in os.walk(
        str(root), topdown=True, onerror=_on_error, followlinks=False
    ):
        # Prune in place so os.walk never descends into excluded dirs
        dirnames[:] = sorted(
            d for d in dirnames
            if not is_excluded(d, exclude_patterns, include_hidden)
        )
        for name in sorted(filenames):
            if any(fnmatch(name, pat) for pat in exclude_patterns):
                continue
            ext = get_extension(name, exts)
            if ext is None:
                continue
            path = os.path.join(dirpath, name)
            if os.path.islink(path) or not os.path.isfile(path):
                continue
            yield FileTask(path=path, extension=ext)


def task_source(
    root: Union[str, Path],
    extension: str,
    exclude_patterns: Sequence[str] = (),
    *,
    include_hidden: bool = False,
) -> Callable[[], Iterator[FileTask]]:
    """
    Return a zero-argument factory producing a fresh walk for one extension.

    Each call re-walks the tree; the sampler and the full pass each take
    their own iterator instead of sharing one.
    """
    ext = normalize_extension(extension)

    def _walk() -> Iterator[FileTask]:
        for task in enumerate_files(
            root, (ext,), exclude_patterns, include_hidden=include_hidden
        ):
            yield task

    return _walk


def count_files(
    root: Union[str, Path],
    extension: str,
    exclude_patterns: Sequence[str] = (),
    *,
    include_hidden: bool = False,
) -> int:
    """Count files for one extension (walks the whole tree)."""
    return sum(
        1 for _ in enumerate_files(
            root, (extension,), exclude_patterns, include_hidden=include_hidden
        )
    )
