# file_assoc/errors.py
"""Exception types shared across the reset pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from file_assoc.parallel.types import RunOutcome

__all__ = [
    "FileAssocError",
    "PerFileError",
    "FileMissingError",
    "FilePermissionError",
    "ValidationError",
    "RunError",
    "WorkerError",
    "ResourceLimitError",
    "CancellationError",
    "EXIT_OK",
    "EXIT_RUN_ERROR",
    "EXIT_VALIDATION",
    "EXIT_CANCELLED",
]

EXIT_OK = 0
EXIT_RUN_ERROR = 1
EXIT_VALIDATION = 2
EXIT_CANCELLED = 130


class FileAssocError(Exception):
    """Base class for all errors raised by file_assoc."""


class PerFileError(FileAssocError):
    """A failure confined to one file; recorded, never fatal to a batch."""

    kind = "os-error"

    def __init__(self, path: str, message: str = "", kind: Optional[str] = None):
        self.path = path
        if kind is not None:
            self.kind = kind
        super().__init__(message or f"{self.kind}: {path}")


class FileMissingError(PerFileError):
    kind = "not-found"


class FilePermissionError(PerFileError):
    kind = "permission-denied"


class ValidationError(FileAssocError):
    """Invalid configuration detected before any processing starts."""


class RunError(FileAssocError):
    """Dispatch stopped early; ``outcome`` holds whatever completed."""

    def __init__(self, message: str, outcome: Optional["RunOutcome"] = None):
        super().__init__(message)
        self.outcome = outcome


class WorkerError(RunError):
    """A worker chunk failed as a whole while halt-on-error was set."""


class ResourceLimitError(RunError):
    """A run-wide resource ceiling (memory) was exceeded."""


class CancellationError(FileAssocError):
    """The run was interrupted by a signal."""
