# file_assoc/pipeline/logger.py
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from datetime import datetime
from typing import Optional, Union

LOG_PREFIX = "reset-file-associations"


def _level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    name = level.upper()
    if name == "WARN":
        name = "WARNING"
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def prune_logs(log_dir: Path, keep: int, prefix: str = LOG_PREFIX) -> int:
    """Delete all but the newest ``keep`` auto-named logs; return count removed."""
    logs = sorted(log_dir.glob(f"{prefix}_*.log"), reverse=True)
    removed = 0
    for old in logs[keep:]:
        try:
            old.unlink()
            removed += 1
        except OSError:
            pass
    return removed


def setup_logger(
    log_dir: str | Path,
    *,
    log_file: Optional[str | Path] = None,
    level: Union[int, str] = logging.INFO,
    filename_prefix: str = LOG_PREFIX,
    console: bool = False,
    rotate: bool = False,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
    keep: int = 5,
    force: bool = False,
) -> Path:
    """
    Configure root logging to write to a timestamped file in ``log_dir``.

    An explicit ``log_file`` is used as-is and never pruned; otherwise the
    newest ``keep`` auto-named logs are retained. Returns the log path.
    Safe to call once at process start.
    """
    lvl = _level(level)

    if log_file is not None:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
    else:
        d = Path(log_dir).expanduser()
        d.mkdir(parents=True, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = d / f"{filename_prefix}_{ts}.log"
        # Leave room for the file about to be created
        prune_logs(d, max(0, keep - 1), filename_prefix)

    root = logging.getLogger()
    if force:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()

    root.setLevel(lvl)

    fmt = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if rotate:
        fhandler = RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    else:
        fhandler = logging.FileHandler(log_path, mode="a", encoding="utf-8")

    fhandler.setLevel(lvl)
    fhandler.setFormatter(fmt)
    root.addHandler(fhandler)

    if console:
        shandler = logging.StreamHandler()
        shandler.setLevel(lvl)
        shandler.setFormatter(fmt)
        root.addHandler(shandler)

    root.info("Logging to: %s", str(log_path))
    return log_path
