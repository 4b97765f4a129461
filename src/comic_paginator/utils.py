"""
Shared utility helpers.

This module keeps the "sharp edges" (errors, validation and name sorting) in
one place so the rest of the code can stay focused on image and layout work.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Tuple, Union


class UserError(Exception):
    """Raised for user-facing problems that should show a clear message."""


class PipelineError(UserError):
    """Raised when the conversion pipeline must abort (e.g. persistence failure)."""


class NoImagesFoundError(PipelineError):
    """Raised when no page survives transformation and filtering."""

    def __init__(self, message: str = "No images found.") -> None:
        super().__init__(message)


_DIGITS = re.compile(r"(\d+)")


def normalize_path(value: str) -> Path:
    """
    Convert user input to a Path.

    We do not resolve() here because we want to preserve relative paths in
    manifests and error messages.
    """

    return Path(value).expanduser()


def ensure_exists(path: Path, label: str) -> Path:
    """Validate that a path exists (file or directory)."""

    if not path.exists():
        raise UserError(f"{label} not found: {path}")
    return path


def ensure_dir(path: Path, dry_run: bool) -> None:
    """
    Create a directory if needed, unless this is a dry-run.

    Why: dry-run should never touch the filesystem, but real runs should
    create output folders automatically.
    """

    if dry_run:
        return
    path.mkdir(parents=True, exist_ok=True)


def ensure_file_path(path: Path, label: str) -> None:
    """Ensure a path is a file path (not an existing directory)."""

    if path.exists() and path.is_dir():
        raise UserError(f"{label} is a directory, not a file: {path}")


def validate_positive_int(value: int, label: str) -> int:
    """Common validation for options like --workers or --view_width."""

    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise UserError(f"{label} must be a positive integer.")
    return value


def validate_int_range(value: int, low: int, high: int, label: str) -> int:
    """Validate an integer option against an inclusive range."""

    if isinstance(value, bool) or not isinstance(value, int):
        raise UserError(f"{label} must be an integer.")
    if value < low or value > high:
        raise UserError(f"{label} must be in the range [{low}, {high}].")
    return value


def natural_key(name: str) -> Tuple[Tuple[int, Union[int, str]], ...]:
    """
    Sort key that compares digit runs numerically.

    "page2.jpg" sorts before "page10.jpg", which plain string sorting gets wrong.
    Each chunk is tagged so digits and text never compare against each other.
    """

    parts: List[Tuple[int, Union[int, str]]] = []
    for chunk in _DIGITS.split(name.lower()):
        if not chunk:
            continue
        parts.append((0, int(chunk)) if chunk.isdigit() else (1, chunk))
    return tuple(parts)


def workers_ratio(workers: int, pct: int) -> int:
    """Scale the configured worker count by a percentage, never below 1."""

    return max(1, workers * pct // 100)
