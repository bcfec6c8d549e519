"""Concurrent zip extraction.

This module handles:
- Streaming zip entries into an output directory
- Preserving POSIX permission bits and symbolic links on POSIX hosts
- Skipping entries whose path would escape the output directory
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import zipfile
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn

from gt_installer.errors import InstallerError
from gt_installer.transfer.pool import run_bounded

logger = logging.getLogger(__name__)

MAX_CONCURRENT_UNPACKS = 2

_IS_POSIX = os.name == "posix"


class ExtractionError(InstallerError):
    """Raised when archive extraction fails."""

    def __init__(self, message: str, code: str = "extraction_error") -> None:
        """Initialize ExtractionError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message, code=code)


@dataclass(frozen=True)
class UnpackTask:
    """A local archive to expand into a directory."""

    archive: Path
    output: Path


@dataclass
class UnpackResult:
    """Result of expanding one archive."""

    archive: Path
    output: Path
    extracted: int = 0
    skipped: list[str] = field(default_factory=list)


def safe_entry_path(name: str) -> PurePosixPath | None:
    """Normalize an archive entry name, or return None if it is unsafe.

    Backslashes are treated as separators. ``..`` components are resolved
    lexically and must never climb above the output directory.
    """
    if not name or "\0" in name:
        return None
    normalized = name.replace("\\", "/")
    if normalized.startswith("/") or (len(normalized) > 1 and normalized[1] == ":"):
        return None

    parts: list[str] = []
    for part in normalized.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if not parts:
                return None
            parts.pop()
        else:
            parts.append(part)

    if not parts:
        return None
    return PurePosixPath(*parts)


def _unix_mode(info: zipfile.ZipInfo) -> int:
    if info.create_system != 3:  # entries made on Unix carry st_mode
        return 0
    return (info.external_attr >> 16) & 0xFFFF


def _is_within(path: Path, root: Path) -> bool:
    return path.resolve().is_relative_to(root)


def _extract_entry(
    archive: zipfile.ZipFile,
    info: zipfile.ZipInfo,
    output_path: Path,
    root: Path,
) -> bool:
    """Write one entry, returning False if it would land outside ``root``.

    ``root`` is the resolved output directory. Links written by earlier
    entries are followed when checking, so a link can never be used to
    reach outside the output directory.
    """
    mode = _unix_mode(info)

    if not _is_within(output_path.parent, root):
        return False

    if _IS_POSIX and stat.S_ISLNK(mode):
        target = archive.read(info).decode("utf-8")
        if os.path.isabs(target) or not _is_within(output_path.parent / target, root):
            return False
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if output_path.is_symlink() or output_path.exists():
            output_path.unlink()
        os.symlink(target, output_path)
        return True

    if not _is_within(output_path, root):
        return False

    if info.is_dir():
        output_path.mkdir(parents=True, exist_ok=True)
    else:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with archive.open(info) as source, output_path.open("wb") as target_file:
            shutil.copyfileobj(source, target_file)

    if _IS_POSIX and stat.S_IMODE(mode):
        os.chmod(output_path, stat.S_IMODE(mode))
    return True


def unzip_archive(
    task: UnpackTask,
    progress: Progress | None = None,
) -> UnpackResult:
    """Expand one zip archive into its output directory.

    Args:
        task: Archive and output directory.
        progress: Optional progress display to add a bar to.

    Returns:
        UnpackResult listing how many entries were written and which were
        skipped as unsafe.

    Raises:
        ExtractionError: If the archive cannot be read or written out.
    """
    logger.info("Extracting %s to %s", task.archive.name, task.output)
    result = UnpackResult(archive=task.archive, output=task.output)

    try:
        task.output.mkdir(parents=True, exist_ok=True)
        root = task.output.resolve()
        with zipfile.ZipFile(task.archive) as archive:
            entries = archive.infolist()
            bar = None
            if progress is not None:
                bar = progress.add_task(task.archive.name, total=len(entries))

            for info in entries:
                relative = safe_entry_path(info.filename)
                if relative is not None and _extract_entry(
                    archive, info, task.output / relative, root
                ):
                    result.extracted += 1
                else:
                    result.skipped.append(info.filename)
                if bar is not None:
                    progress.advance(bar)  # type: ignore[union-attr]

    except zipfile.BadZipFile as e:
        raise ExtractionError(
            f"Failed to extract {task.archive}: {e}", code="zip_error"
        ) from e
    except OSError as e:
        raise ExtractionError(
            f"OS error extracting {task.archive}: {e}", code="os_error"
        ) from e

    if result.skipped:
        logger.warning(
            "Skipped %d unsafe entries in %s: %s",
            len(result.skipped),
            task.archive.name,
            ", ".join(result.skipped),
        )
    logger.info("Extracted %d entries from %s", result.extracted, task.archive.name)
    return result


def unpack_progress() -> Progress:
    """Create the progress display used for extraction."""
    return Progress(
        TextColumn("{task.description}"),
        BarColumn(bar_width=40),
        TaskProgressColumn(),
    )


class ArchiveExpander:
    """Expands a set of archives with bounded parallelism."""

    def __init__(
        self,
        max_concurrent: int = MAX_CONCURRENT_UNPACKS,
        progress: Progress | None = None,
    ) -> None:
        self.max_concurrent = max_concurrent
        self.progress = progress
        self.completed = 0

    def expand(self, tasks: Sequence[UnpackTask]) -> list[UnpackResult]:
        """Expand every archive, failing on the first error.

        Returns:
            Results in the order of ``tasks``.

        Raises:
            ExtractionError: For the first archive that fails.
        """
        self.completed = 0
        progress = self.progress or unpack_progress()
        total = progress.add_task("total", total=len(tasks))

        def on_complete(_task: UnpackTask, _result: UnpackResult) -> None:
            self.completed += 1
            progress.advance(total)

        with progress:
            results = run_bounded(
                tasks,
                lambda task: unzip_archive(task, progress=progress),
                max_workers=self.max_concurrent,
                on_complete=on_complete,
                name="unpack",
            )
        progress.update(total, description="done")
        return results


__all__ = [
    "ArchiveExpander",
    "ExtractionError",
    "MAX_CONCURRENT_UNPACKS",
    "UnpackResult",
    "UnpackTask",
    "safe_entry_path",
    "unpack_progress",
    "unzip_archive",
]
