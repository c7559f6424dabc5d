# file_assoc/pipeline/associations.py
"""Apply the system-wide extension -> application mapping with ``duti``."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Optional, Union

from file_assoc.errors import RunError, ValidationError

logger = logging.getLogger(__name__)

__all__ = ["DUTI", "apply_system_defaults", "find_duti"]

DUTI = "duti"


def find_duti(which: Callable[[str], Optional[str]] = shutil.which) -> Optional[str]:
    return which(DUTI)


def apply_system_defaults(
    mapping_file: Union[str, Path],
    *,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> None:
    """
    Register every mapping in ``mapping_file`` as the OS default handler.

    The file is handed to ``duti`` unchanged; this module never parses it.
    Raises ValidationError when the tool or the file is missing and
    RunError when ``duti`` exits non-zero.
    """
    exe = find_duti(which)
    if exe is None:
        raise ValidationError("duti is not installed (brew install duti)")

    path = Path(mapping_file).expanduser()
    if not path.is_file():
        raise ValidationError(f"Configuration file not found: {path}")

    logger.info("Applying file associations from %s", path)
    proc = runner([exe, str(path)], capture_output=True, text=True, check=False)
    if proc.returncode != 0:
        detail = (proc.stderr or proc.stdout or "").strip()
        logger.error("duti exited with %d: %s", proc.returncode, detail)
        raise RunError(f"duti failed with exit code {proc.returncode}: {detail}")

    logger.info("File associations applied from %s", path)
