# file_assoc/config.py
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from file_assoc.errors import ValidationError

__all__ = [
    "DEFAULT_EXTENSIONS",
    "DEFAULT_EXCLUDE_PATTERNS",
    "DEFAULT_LOG_DIR",
    "ENV_PREFIX",
    "WorkerConfig",
    "ResetConfig",
    "default_worker_count",
    "normalize_extension",
    "normalize_extensions",
    "validate_config",
]

ENV_PREFIX = "FILE_ASSOC_"

# Matches the extension list in the system association mapping
DEFAULT_EXTENSIONS: Tuple[str, ...] = (
    "json", "jsonc", "json5", "yaml", "yml", "toml",
    "md", "markdown", "txt", "log",
    "sh", "bash", "zsh", "fish",
    "ts", "tsx", "js", "jsx", "mjs", "cjs",
    "py", "rs", "go", "java", "c", "cpp", "h", "hpp", "rb",
    "env", "envrc", "gitignore", "gitattributes",
    "csv", "tsv", "xml", "svg", "sql",
)

DEFAULT_EXCLUDE_PATTERNS: Tuple[str, ...] = (
    ".git", ".hg", ".svn", "node_modules", "__pycache__",
)

DEFAULT_LOG_DIR = Path("~/.file-assoc/logs")

MAX_WORKERS = 128


def default_worker_count(cpu_count: Optional[int] = None) -> int:
    """Return 75% of available CPUs, clamped to [1, MAX_WORKERS]."""
    cpus = cpu_count if cpu_count is not None else (os.cpu_count() or 4)
    return max(1, min(MAX_WORKERS, (cpus * 3) // 4))


def normalize_extension(ext: str) -> str:
    """Strip whitespace and one leading dot: ``" .md "`` -> ``"md"``."""
    ext = ext.strip()
    return ext[1:] if ext.startswith(".") else ext


def normalize_extensions(exts: Iterable[str]) -> Tuple[str, ...]:
    """Normalize, drop blanks and duplicates, keep first-seen order."""
    seen: Dict[str, None] = {}
    for ext in exts:
        norm = normalize_extension(ext)
        if norm:
            seen.setdefault(norm, None)
    return tuple(seen)


@dataclass(frozen=True)
class WorkerConfig:
    """Dispatch settings, computed once per run and read-only afterwards."""

    worker_count: int = field(default_factory=default_worker_count)
    chunk_size: int = 100
    halt_on_error: bool = False
    preserve_order: bool = False
    max_rate_per_second: Optional[int] = None
    use_threads: bool = False  # threads share memory; processes isolate workers


@dataclass(frozen=True)
class ResetConfig:
    """Run-wide options for a reset pass.

    Workers of 0 means auto-detect (75% of CPU cores). A max rate of None
    disables throttling.
    """
    # Target
    root: Path = Path(".")
    extensions: Tuple[str, ...] = ()
    exclude_patterns: Tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    include_hidden: bool = False

    # Behaviour
    dry_run: bool = False
    verbose: bool = False
    no_confirm: bool = False

    # Parallelism
    workers: int = 0
    chunk_size: int = 100
    use_parallel: bool = True
    use_threads: bool = False
    preserve_order: bool = False
    halt_on_error: bool = False

    # Sampling
    sample_size: int = 100
    min_sample_size: int = 1
    skip_sampling: bool = False
    random_seed: Optional[int] = None

    # Resource limits
    max_files: int = 10_000
    max_rate: Optional[int] = 100
    max_memory_mb: int = 500

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    log_dir: Path = DEFAULT_LOG_DIR

    @property
    def effective_extensions(self) -> Tuple[str, ...]:
        exts = normalize_extensions(self.extensions)
        return exts if self.extensions else DEFAULT_EXTENSIONS

    @property
    def effective_workers(self) -> int:
        return self.workers if self.workers > 0 else default_worker_count()

    def worker_config(self) -> WorkerConfig:
        return WorkerConfig(
            worker_count=self.effective_workers,
            chunk_size=self.chunk_size,
            halt_on_error=self.halt_on_error,
            preserve_order=self.preserve_order,
            max_rate_per_second=self.max_rate,
            use_threads=self.use_threads,
        )

    def with_overrides(self, **overrides: Any) -> "ResetConfig":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "ResetConfig":
        """
        Build a config from ``FILE_ASSOC_*`` variables, then apply overrides.

        Overrides set to None are ignored so CLI defaults never mask the
        environment.
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        for name, parser in _ENV_FIELDS.items():
            raw = env.get(ENV_PREFIX + name)
            if raw is None or raw.strip() == "":
                continue
            attr, value = parser(name, raw.strip())
            values[attr] = value

        return cls(**values).with_overrides(**overrides)


# ---------------------------------------------------------------------------
# Environment parsing
# ---------------------------------------------------------------------------

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _bool(attr: str):
    def parse(name: str, raw: str) -> Tuple[str, bool]:
        low = raw.lower()
        if low in _TRUE:
            return attr, True
        if low in _FALSE:
            return attr, False
        raise ValidationError(f"{ENV_PREFIX}{name} must be a boolean, got {raw!r}")
    return parse


def _int(attr: str):
    def parse(name: str, raw: str) -> Tuple[str, int]:
        try:
            return attr, int(raw)
        except ValueError:
            raise ValidationError(
                f"{ENV_PREFIX}{name} must be an integer, got {raw!r}"
            ) from None
    return parse


def _rate(name: str, raw: str) -> Tuple[str, Optional[int]]:
    _, value = _int("max_rate")(name, raw)
    return "max_rate", (value or None)


def _path(attr: str):
    def parse(name: str, raw: str) -> Tuple[str, Path]:
        return attr, Path(raw).expanduser()
    return parse


def _extensions(name: str, raw: str) -> Tuple[str, Tuple[str, ...]]:
    return "extensions", tuple(p for p in re.split(r"[,\s]+", raw) if p)


def _upper(attr: str):
    def parse(name: str, raw: str) -> Tuple[str, str]:
        return attr, raw.upper()
    return parse


_ENV_FIELDS = {
    "ROOT": _path("root"),
    "EXTENSIONS": _extensions,
    "DRY_RUN": _bool("dry_run"),
    "VERBOSE": _bool("verbose"),
    "NO_CONFIRM": _bool("no_confirm"),
    "WORKERS": _int("workers"),
    "CHUNK_SIZE": _int("chunk_size"),
    "USE_PARALLEL": _bool("use_parallel"),
    "USE_THREADS": _bool("use_threads"),
    "PRESERVE_ORDER": _bool("preserve_order"),
    "HALT_ON_ERROR": _bool("halt_on_error"),
    "SAMPLE_SIZE": _int("sample_size"),
    "MIN_SAMPLE_SIZE": _int("min_sample_size"),
    "SKIP_SAMPLING": _bool("skip_sampling"),
    "MAX_FILES": _int("max_files"),
    "MAX_RATE": _rate,
    "MAX_MEMORY": _int("max_memory_mb"),
    "LOG_LEVEL": _upper("log_level"),
    "LOG_FILE": _path("log_file"),
    "LOG_DIR": _path("log_dir"),
}

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARN", "WARNING", "ERROR"}


def validate_config(config: ResetConfig) -> Path:
    """
    Check a config before any processing begins.

    Returns the resolved absolute root directory. Raises ValidationError on
    the first problem found.
    """
    root = Path(config.root).expanduser()
    if not root.exists():
        raise ValidationError(f"Invalid target directory: {root} does not exist")
    if not root.is_dir():
        raise ValidationError(f"Invalid target directory: {root} is not a directory")
    if not os.access(root, os.R_OK | os.X_OK):
        raise ValidationError(f"Invalid target directory: {root} is not readable")

    exts = config.effective_extensions
    if not exts:
        raise ValidationError("No file extensions to process")
    bad = [e for e in exts if "/" in e or os.sep in e]
    if bad:
        raise ValidationError(f"Extensions may not contain path separators: {bad}")

    positive = {
        "chunk_size": config.chunk_size,
        "sample_size": config.sample_size,
        "max_files": config.max_files,
        "max_memory_mb": config.max_memory_mb,
    }
    for name, value in positive.items():
        if value < 1:
            raise ValidationError(f"{name} must be at least 1 (got {value})")
    if config.workers < 0:
        raise ValidationError(f"workers must be >= 0 (got {config.workers})")
    if config.max_rate is not None and config.max_rate < 0:
        raise ValidationError(f"max_rate must be >= 0 (got {config.max_rate})")
    if config.min_sample_size < 0:
        raise ValidationError(
            f"min_sample_size must be >= 0 (got {config.min_sample_size})"
        )
    if config.log_level.upper() not in _VALID_LOG_LEVELS:
        raise ValidationError(f"Unknown log level: {config.log_level}")

    return root.resolve()
