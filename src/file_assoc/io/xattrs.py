# file_assoc/io/xattrs.py
from __future__ import annotations

import errno
import logging
from typing import List

import xattr

from file_assoc.errors import FileMissingError, FilePermissionError, PerFileError

logger = logging.getLogger(__name__)

__all__ = ["LAUNCH_SERVICES_ATTR", "XattrStore"]

# Per-file handler override written by Finder's "Open With" setting
LAUNCH_SERVICES_ATTR = "com.apple.LaunchServices.OpenWith"

# macOS reports a missing attribute as ENOATTR, Linux as ENODATA
_MISSING_ATTR = {getattr(errno, "ENOATTR", errno.ENODATA), errno.ENODATA}
_UNSUPPORTED = {errno.ENOTSUP, getattr(errno, "EOPNOTSUPP", errno.ENOTSUP)}
_DENIED = {errno.EACCES, errno.EPERM, errno.EROFS}


def _translate(path: str, exc: OSError) -> PerFileError:
    if exc.errno == errno.ENOENT:
        return FileMissingError(path, f"File not found: {path}")
    if exc.errno in _DENIED:
        return FilePermissionError(path, f"Permission denied: {path}")
    return PerFileError(path, f"{exc.strerror or exc}: {path}")


class XattrStore:
    """
    Check and remove one named extended attribute.

    ``check`` never mutates. ``clear`` is idempotent: removing an attribute
    that is already gone reports ``False`` instead of failing. Symlinks are
    not followed. Instances hold only the attribute name, so they pickle
    cleanly into worker processes.
    """

    def __init__(self, attr_name: str = LAUNCH_SERVICES_ATTR):
        self.attr_name = attr_name

    def __repr__(self) -> str:
        return f"XattrStore({self.attr_name!r})"

    def check(self, path: str) -> bool:
        """Return True if ``path`` carries the attribute."""
        try:
            xattr.getxattr(path, self.attr_name, symlink=True)
            return True
        except OSError as exc:
            if exc.errno in _MISSING_ATTR or exc.errno in _UNSUPPORTED:
                return False
            raise _translate(path, exc) from exc

    def clear(self, path: str) -> bool:
        """Remove the attribute; return whether it had been present."""
        try:
            xattr.removexattr(path, self.attr_name, symlink=True)
            logger.debug("Cleared %s from %s", self.attr_name, path)
            return True
        except OSError as exc:
            if exc.errno in _MISSING_ATTR or exc.errno in _UNSUPPORTED:
                return False
            raise _translate(path, exc) from exc

    def list_attributes(self, path: str) -> List[str]:
        """Return every extended attribute name on ``path``."""
        try:
            return list(xattr.listxattr(path, symlink=True))
        except OSError as exc:
            if exc.errno in _UNSUPPORTED:
                return []
            raise _translate(path, exc) from exc

    def available(self, path: str = ".") -> bool:
        """True when the filesystem holding ``path`` supports extended attributes."""
        try:
            xattr.listxattr(path)
        except OSError as exc:
            if exc.errno in _UNSUPPORTED:
                return False
            raise _translate(path, exc) from exc
        return True
