"""
Shared utility helpers.

This module keeps the "sharp edges" (validation, error types and naming) in
one place so the rest of the code can stay focused on PDF/image work.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional


class UserError(Exception):
    """Raised for user-facing problems that should show a clear message."""


class ConfigurationError(UserError):
    """Bad inputs: missing source, degenerate page count, invalid options."""


class CollaboratorFailure(UserError):
    """
    A render/crop/compose/assemble/count call failed.

    The stage and (where known) the page or sheet index are kept so the
    terminal error report can say exactly what broke.
    """

    def __init__(self, stage: str, message: str, index: Optional[int] = None) -> None:
        self.stage = stage
        self.index = index
        self.detail = message
        where = f"{stage} stage" if index is None else f"{stage} stage, index {index}"
        super().__init__(f"{where}: {message}")

    def __reduce__(self):
        # Worker processes send failures back pickled.
        return (self.__class__, (self.stage, self.detail, self.index))


class ResourceError(UserError):
    """Failure to create or remove the working directory."""


def normalize_path(value: str) -> Path:
    """
    Convert user input to a Path.

    We do not resolve() here because we want to preserve relative paths in
    manifests and error messages.
    """

    return Path(value).expanduser()


def ensure_file_exists(path: Path, label: str) -> Path:
    """Validate that a path exists and is a file."""

    if not path.exists():
        raise ConfigurationError(f"{label} not found: {path}")
    if not path.is_file():
        raise ConfigurationError(f"{label} is not a file: {path}")
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
        raise ConfigurationError(f"{label} is a directory, not a file: {path}")


def validate_positive_int(value: int, label: str) -> int:
    """Common validation for options like --dpi."""

    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"{label} must be a positive integer.")
    return value


def validate_quality(value: int) -> int:
    """JPEG quality is 1..100 for both Pillow and the PDF assembler."""

    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 100:
        raise ConfigurationError("--quality must be an integer in the range [1, 100].")
    return value


def validate_choice(value: str, choices: tuple[str, ...], label: str) -> str:
    if value not in choices:
        raise ConfigurationError(f"{label} must be one of: {', '.join(choices)}.")
    return value


def resolve_workers(value: Optional[int]) -> int:
    """
    Decide the worker pool size.

    Unset or non-positive means "one worker per available core".
    """

    if value is None:
        return max(1, os.cpu_count() or 1)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError("--workers must be an integer.")
    if value <= 0:
        return max(1, os.cpu_count() or 1)
    return value


def compute_index_digits(count: int) -> int:
    """
    Decide how many zero-padding digits to use for page/sheet indices.

    Why: we want stable, sortable filenames like 0001, 0002, etc.
    """

    if count <= 0:
        return 4
    return max(4, len(str(count)))


def index_filename(index: int, digits: int, suffix: str) -> str:
    return f"{index:0{digits}d}{suffix}"
