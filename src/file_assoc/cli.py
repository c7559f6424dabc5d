# file_assoc/cli.py
"""Command line entry points: ``file-assoc`` and ``reset-file-associations``."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from file_assoc import __version__
from file_assoc.config import DEFAULT_EXCLUDE_PATTERNS, ResetConfig, validate_config
from file_assoc.errors import (
    EXIT_OK,
    EXIT_RUN_ERROR,
    EXIT_VALIDATION,
    RunError,
    ValidationError,
)
from file_assoc.pipeline.associations import apply_system_defaults
from file_assoc.pipeline.logger import setup_logger
from file_assoc.pipeline.orchestrate import reset_file_associations
from file_assoc.utilities.display import colorize

logger = logging.getLogger(__name__)

__all__ = ["main", "reset_main", "build_parser", "build_reset_parser", "config_from_args"]


def _add_reset_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("directory", nargs="?", type=Path, default=None,
                   help="Directory to process (default: current directory)")
    p.add_argument("-p", "--path", type=Path, default=None,
                   help="Directory to process (alternative to DIRECTORY)")
    p.add_argument("-d", "--dry-run", action="store_true", default=None,
                   help="Report what would be cleared without changing anything")
    p.add_argument("-v", "--verbose", action="store_true", default=None,
                   help="Show sampling details and progress bars")
    p.add_argument("--no-confirm", action="store_true", default=None,
                   help="Do not ask for confirmation before a live run")
    p.add_argument("-e", "--ext", dest="extensions", action="append", default=None,
                   metavar="EXT", help="Extension to process (repeatable; default: built-in list)")
    p.add_argument("--exclude", action="append", default=None, metavar="PATTERN",
                   help="Additional directory/file name pattern to skip (repeatable)")
    p.add_argument("--include-hidden", action="store_true", default=None,
                   help="Descend into hidden directories")

    limits = p.add_argument_group("limits")
    limits.add_argument("--max-files", type=int, default=None,
                        help="Stop after this many files in total (default: 10000)")
    limits.add_argument("--max-rate", type=int, default=None,
                        help="Maximum files per second (default: 100)")
    limits.add_argument("--max-memory", type=int, default=None, metavar="MB",
                        help="Maximum resident memory in MB (default: 500)")
    limits.add_argument("--no-throttle", action="store_true",
                        help="Disable rate limiting")

    par = p.add_argument_group("parallelism")
    par.add_argument("--workers", type=int, default=None,
                     help="Worker count (default: 75%% of CPU cores)")
    par.add_argument("--chunk-size", type=int, default=None,
                     help="Files per worker chunk (default: 100)")
    par.add_argument("--no-parallel", action="store_true",
                     help="Process files sequentially")
    par.add_argument("--threads", action="store_true", default=None,
                     help="Use threads instead of processes")
    par.add_argument("--preserve-order", action="store_true", default=None,
                     help="Emit results in discovery order")
    par.add_argument("--halt-on-error", action="store_true", default=None,
                     help="Stop dispatch on the first worker failure")

    samp = p.add_argument_group("sampling")
    samp.add_argument("--sample-size", type=int, default=None,
                      help="Files sampled per extension (default: 100)")
    samp.add_argument("--skip-sampling", action="store_true", default=None,
                      help="Always process every file")
    samp.add_argument("--seed", type=int, default=None,
                      help="Random seed for reproducible sampling")

    log = p.add_argument_group("logging")
    log.add_argument("--log-level", default=None,
                     choices=["DEBUG", "INFO", "WARN", "WARNING", "ERROR"],
                     type=str.upper, help="Log level (default: INFO)")
    log.add_argument("--log-file", type=Path, default=None,
                     help="Write the log here instead of the log directory")
    log.add_argument("--no-color", action="store_true", help="Disable ANSI colors")


def build_reset_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog=prog,
        description="Reset per-file 'Open With' overrides so files use system defaults.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _add_reset_arguments(p)
    return p


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="file-assoc",
        description="Manage macOS file associations.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="command")

    reset = sub.add_parser("reset", help="Clear per-file association overrides")
    _add_reset_arguments(reset)

    apply = sub.add_parser("apply", help="Apply a duti mapping file as system defaults")
    apply.add_argument("mapping_file", type=Path, help="duti configuration file")
    return p


def config_from_args(
    args: argparse.Namespace,
    environ: Optional[Dict[str, str]] = None,
) -> ResetConfig:
    """
    Merge parsed options over ``FILE_ASSOC_*`` environment settings.

    Raises ValidationError for conflicting options.
    """
    if args.no_throttle and args.max_rate is not None:
        raise ValidationError("--no-throttle conflicts with --max-rate")
    if args.skip_sampling and args.sample_size is not None:
        raise ValidationError("--skip-sampling conflicts with --sample-size")
    if args.directory is not None and args.path is not None and args.directory != args.path:
        raise ValidationError(
            f"Conflicting directories: {args.directory} and --path {args.path}"
        )

    overrides: Dict[str, Any] = dict(
        root=args.path or args.directory,
        extensions=tuple(args.extensions) if args.extensions else None,
        exclude_patterns=(
            DEFAULT_EXCLUDE_PATTERNS + tuple(args.exclude) if args.exclude else None
        ),
        include_hidden=args.include_hidden,
        dry_run=args.dry_run,
        verbose=args.verbose,
        no_confirm=args.no_confirm,
        workers=args.workers,
        chunk_size=args.chunk_size,
        use_parallel=False if args.no_parallel else None,
        use_threads=args.threads,
        preserve_order=args.preserve_order,
        halt_on_error=args.halt_on_error,
        sample_size=args.sample_size,
        skip_sampling=args.skip_sampling,
        random_seed=args.seed,
        max_files=args.max_files,
        max_rate=0 if args.no_throttle else args.max_rate,
        max_memory_mb=args.max_memory,
        log_level=args.log_level,
        log_file=args.log_file,
    )
    return ResetConfig.from_env(environ, **overrides)


def _error(message: str, color: bool) -> None:
    print(colorize(f"Error: {message}", "red", color), file=sys.stderr)


def _interactive() -> bool:
    return sys.stdin.isatty()


def confirm(question: str) -> bool:
    """Ask a yes/no question on the terminal; anything but yes declines."""
    try:
        answer = input(f"{question} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def run_reset(args: argparse.Namespace) -> int:
    color = sys.stdout.isatty() and not args.no_color
    try:
        config = config_from_args(args)
        validate_config(config)
    except ValidationError as exc:
        _error(str(exc), color)
        return EXIT_VALIDATION

    try:
        log_path = setup_logger(
            config.log_dir,
            log_file=config.log_file,
            level=config.log_level,
        )
    except OSError as exc:
        _error(f"Cannot create log file: {exc}", color)
        return EXIT_VALIDATION

    if not config.dry_run and not config.no_confirm and _interactive():
        if not confirm(f"Clear file association overrides under {config.root}?"):
            print(colorize("Operation cancelled by user", "yellow", color))
            logger.info("Operation cancelled by user at confirmation")
            return EXIT_OK
        logger.info("User confirmed operation")

    try:
        result = reset_file_associations(config, color=color, log_path=log_path)
    except ValidationError as exc:
        _error(str(exc), color)
        return EXIT_VALIDATION

    if result.report.cancelled:
        print(colorize("Operation cancelled by user", "yellow", color))
    elif result.error is not None:
        _error(str(result.error), color)
    if config.dry_run and result.ok:
        print(colorize("Dry run: no files were modified", "cyan", color))
    print(f"See log: {log_path}")
    return result.exit_code


def run_apply(args: argparse.Namespace) -> int:
    color = sys.stdout.isatty()
    try:
        config = ResetConfig.from_env()
        setup_logger(config.log_dir, log_file=config.log_file, level=config.log_level)
        apply_system_defaults(args.mapping_file)
    except ValidationError as exc:
        _error(str(exc), color)
        return EXIT_VALIDATION
    except OSError as exc:
        _error(f"Cannot create log file: {exc}", color)
        return EXIT_VALIDATION
    except RunError as exc:
        _error(str(exc), color)
        return EXIT_RUN_ERROR

    print(colorize(f"File associations applied from {args.mapping_file}", "green", color))
    print("Changes take effect immediately for new files.")
    print("To reset existing files: file-assoc reset")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "reset":
        return run_reset(args)
    if args.command == "apply":
        return run_apply(args)
    parser.print_help(sys.stderr)
    return EXIT_VALIDATION


def reset_main(argv: Optional[List[str]] = None) -> int:
    """``reset-file-associations`` takes the reset options directly."""
    args = build_reset_parser(prog="reset-file-associations").parse_args(argv)
    return run_reset(args)


if __name__ == "__main__":
    sys.exit(main())
