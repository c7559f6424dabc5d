# file_assoc/utilities/display.py
"""Common display formatting utilities for reports and banners."""

from pathlib import Path
from typing import Union

__all__ = [
    "colorize",
    "format_rate",
    "truncate_path_to_fit",
    "format_banner",
]

ANSI = {
    "red": "\033[0;31m",
    "green": "\033[0;32m",
    "yellow": "\033[1;33m",
    "blue": "\033[0;34m",
    "cyan": "\033[0;36m",
    "underline": "\033[4m",
    "reset": "\033[0m",
}


def colorize(text: str, color: str, enabled: bool = True) -> str:
    """Wrap text in an ANSI color code when enabled."""
    if not enabled:
        return text
    return f"{ANSI[color]}{text}{ANSI['reset']}"


def format_rate(rate: float) -> str:
    """Files per second with one decimal place."""
    return f"{rate:.1f}"


def truncate_path_to_fit(
    path: Union[Path, str],
    prefix: str,
    total_width: int = 100,
) -> str:
    """Truncate path to fit within total_width including prefix.

    Examples:
        >>> truncate_path_to_fit("/long/path", "Short: ", 50)
        '/long/path'
    """
    path_str = str(path)
    max_path_length = total_width - len(prefix)

    if len(path_str) <= max_path_length:
        return path_str
    if max_path_length < 4:
        return "..."
    return "..." + path_str[-(max_path_length - 3):]


def format_banner(title: str, width: int = 56, style: str = "═") -> str:
    """Create a banner: separator line, title, separator line."""
    line = style * width
    return f"{line}\n{title}\n{line}"
