"""Locate single files by pattern and move them between trees."""

from __future__ import annotations

import fnmatch
import logging
import re
import shutil
from pathlib import Path

from gt_installer.errors import InstallerError

logger = logging.getLogger(__name__)


class FileMatchError(InstallerError):
    """Raised when a pattern does not resolve to exactly one file."""

    def __init__(self, message: str, pattern: str, directory: Path, code: str) -> None:
        super().__init__(message, code=code)
        self.pattern = pattern
        self.directory = directory


class NoMatchError(FileMatchError):
    """No file in the directory matches the pattern."""

    def __init__(self, pattern: str, directory: Path) -> None:
        super().__init__(
            f"Could not find a file matching {pattern} in {directory}",
            pattern,
            directory,
            code="no_match",
        )


class AmbiguousMatchError(FileMatchError):
    """More than one file in the directory matches the pattern."""

    def __init__(self, pattern: str, directory: Path, matches: list[Path]) -> None:
        super().__init__(
            f"Found more than one file matching {pattern} in {directory}: "
            + ", ".join(sorted(m.name for m in matches)),
            pattern,
            directory,
            code="ambiguous_match",
        )
        self.matches = matches


def find_one(pattern: str, within_dir: Path) -> Path:
    """Return the only regular file in ``within_dir`` whose name matches.

    Args:
        pattern: Regular expression searched in each file name.
        within_dir: Directory to look in (not recursive).

    Returns:
        Path of the matching file.

    Raises:
        NoMatchError: If nothing matches.
        AmbiguousMatchError: If several files match.
        InstallerError: If the directory cannot be listed.
    """
    regex = re.compile(pattern)
    try:
        matches = [
            entry
            for entry in within_dir.iterdir()
            if entry.is_file() and regex.search(entry.name)
        ]
    except OSError as e:
        raise InstallerError(
            f"Failed to list {within_dir}: {e}", code="os_error"
        ) from e

    if not matches:
        raise NoMatchError(pattern, within_dir)
    if len(matches) > 1:
        raise AmbiguousMatchError(pattern, within_dir, matches)
    return matches[0]


def find_entries(glob: str, within_dir: Path) -> list[Path]:
    """Return top-level entries of ``within_dir`` matching a glob, sorted."""
    if not within_dir.is_dir():
        return []
    return sorted(
        entry for entry in within_dir.iterdir() if fnmatch.fnmatch(entry.name, glob)
    )


def move_file(path: Path, destination: Path) -> Path:
    """Copy ``path`` to ``destination`` and delete the original.

    Source and destination may be on different extraction trees, so this is
    a copy followed by a delete rather than a rename. It is not crash-atomic.

    Args:
        path: File to move.
        destination: Existing directory to move into, or the target file path.

    Returns:
        Final path of the file.
    """
    target = destination / path.name if destination.is_dir() else destination
    logger.debug("Moving %s to %s", path, target)
    try:
        shutil.copy2(path, target)
        path.unlink()
    except OSError as e:
        raise InstallerError(
            f"Failed to move {path} to {target}: {e}", code="os_error"
        ) from e
    return target


def relocate(pattern: str, within_dir: Path, destination: Path) -> Path:
    """Find the single file matching ``pattern`` and move it."""
    return move_file(find_one(pattern, within_dir), destination)


def copy_into(entry: Path, directory: Path) -> Path:
    """Copy a file or a whole folder into ``directory`` under its own name."""
    target = directory / entry.name
    try:
        if entry.is_dir():
            shutil.copytree(entry, target, symlinks=True, dirs_exist_ok=True)
        else:
            shutil.copy2(entry, target)
    except OSError as e:
        raise InstallerError(
            f"Failed to copy {entry} to {directory}: {e}", code="os_error"
        ) from e
    return target


__all__ = [
    "AmbiguousMatchError",
    "FileMatchError",
    "NoMatchError",
    "copy_into",
    "find_entries",
    "find_one",
    "move_file",
    "relocate",
]
