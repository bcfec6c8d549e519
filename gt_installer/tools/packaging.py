"""Packaging built images into zip archives.

This module handles:
- Writing deflated zip archives of files and folders
- Tentative packages that can be unpacked into another workspace
- Release packages named after the image version and the host platform

Folders are stored relative to their parent, so ``gt-extra/x`` stays
``gt-extra/x`` inside the archive. POSIX permission bits are preserved and
symbolic links are stored as links.
"""

from __future__ import annotations

import logging
import os
import stat
import zipfile
from collections.abc import Sequence
from pathlib import Path

import httpx
from rich.console import Console
from rich.progress import Progress

from gt_installer.config import Settings, get_settings
from gt_installer.errors import InstallerError
from gt_installer.platform import paths_for
from gt_installer.smalltalk.gtoolkit import GToolkit
from gt_installer.smalltalk.templates import render
from gt_installer.transfer.download import ConcurrentFetcher
from gt_installer.transfer.relocate import NoMatchError, find_one
from gt_installer.transfer.unpack import ArchiveExpander, UnpackTask
from gt_installer.workspace.descriptor import WorkspaceDescriptor

logger = logging.getLogger(__name__)

IMAGE_FILE_PATTERNS = (r"\.image$", r"\.changes$", r"\.sources$")


class PackagingError(InstallerError):
    """Raised when a package cannot be assembled or written."""

    def __init__(self, message: str, code: str = "packaging_error") -> None:
        super().__init__(message, code=code)


def _add_symlink(archive: zipfile.ZipFile, path: Path, arcname: str) -> None:
    info = zipfile.ZipInfo(arcname)
    info.create_system = 3
    info.external_attr = (stat.S_IFLNK | 0o777) << 16
    archive.writestr(info, os.readlink(path))


def _add_folder(archive: zipfile.ZipFile, folder: Path) -> None:
    base = folder.parent
    for root, dirs, files in os.walk(folder):
        dirs.sort()
        root_path = Path(root)
        archive.write(root_path, root_path.relative_to(base).as_posix())
        for name in dirs:
            path = root_path / name
            if path.is_symlink():
                _add_symlink(archive, path, path.relative_to(base).as_posix())
        for name in sorted(files):
            path = root_path / name
            arcname = path.relative_to(base).as_posix()
            if path.is_symlink():
                _add_symlink(archive, path, arcname)
            else:
                archive.write(path, arcname)


def zip_entries(archive: Path, entries: Sequence[Path]) -> Path:
    """Write ``entries`` (files or folders) into a new deflated zip.

    Raises:
        PackagingError: If an entry cannot be read or the archive written.
    """
    logger.info("Packaging %d entries into %s", len(entries), archive)
    try:
        archive.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for entry in entries:
                if entry.is_symlink():
                    _add_symlink(zf, entry, entry.name)
                elif entry.is_dir():
                    _add_folder(zf, entry)
                else:
                    zf.write(entry, entry.name)
    except OSError as e:
        raise PackagingError(f"Failed to write {archive}: {e}", code="os_error") from e
    return archive


def package_entries(
    descriptor: WorkspaceDescriptor, ignore_absent: bool = False
) -> list[Path]:
    """Image triad, state file, ``gt-extra`` and the host runtime entries.

    Raises:
        NoMatchError: If an image file is missing and ``ignore_absent`` is off.
        AmbiguousMatchError: If the workspace holds more than one image.
        PackagingError: If the state file or ``gt-extra`` is missing and
            ``ignore_absent`` is off.
    """
    workspace = descriptor.workspace
    entries: list[Path] = []
    for pattern in IMAGE_FILE_PATTERNS:
        try:
            entries.append(find_one(pattern, workspace))
        except NoMatchError:
            if not ignore_absent:
                raise
            logger.warning("No file matching %s in %s, skipping", pattern, workspace)

    for optional in (descriptor.state_file, descriptor.extra_directory):
        if optional.exists():
            entries.append(optional)
        elif not ignore_absent:
            raise PackagingError(f"{optional} does not exist", code="missing_entry")
        else:
            logger.warning("%s does not exist, skipping", optional)

    entries.extend(descriptor.app_entries())
    return entries


def package_tentative(
    descriptor: WorkspaceDescriptor, archive: Path, ignore_absent: bool = False
) -> Path:
    """Package the workspace so another machine can continue from it."""
    return zip_entries(archive, package_entries(descriptor, ignore_absent=ignore_absent))


def unpackage_tentative(
    workspace: Path,
    archive: Path,
    settings: Settings | None = None,
    client: httpx.Client | None = None,
    download_progress: Progress | None = None,
    unpack_progress: Progress | None = None,
) -> WorkspaceDescriptor:
    """Expand a tentative package and fetch the runtime for this host.

    Returns:
        The descriptor stored in the package, anchored to ``workspace``.
    """
    settings = settings or get_settings()
    workspace.mkdir(parents=True, exist_ok=True)

    ArchiveExpander(
        max_concurrent=settings.max_concurrent_unpacks, progress=unpack_progress
    ).expand([UnpackTask(archive, workspace)])
    descriptor = WorkspaceDescriptor.load(workspace)

    ConcurrentFetcher(
        client=client,
        max_concurrent=settings.max_concurrent_downloads,
        progress=download_progress,
        head_timeout=settings.head_timeout,
        timeout=settings.download_timeout,
    ).fetch([descriptor.app_download_task()])
    ArchiveExpander(
        max_concurrent=settings.max_concurrent_unpacks, progress=unpack_progress
    ).expand([descriptor.app_unpack_task()])
    return descriptor


def release_path(template: Path, version: object, os_name: str, arch: str) -> Path:
    """Fill ``{{version}}``, ``{{os}}`` and ``{{arch}}`` in each path component."""
    return Path(
        *(
            render(part, version=version, os=os_name, arch=arch)
            for part in template.parts
        )
    )


def package_release(
    descriptor: WorkspaceDescriptor,
    template: Path,
    console: Console | None = None,
) -> Path:
    """Package a release, naming the archive after the image's own version.

    Raises:
        CommandExecutionFailed: If the version cannot be read from the image.
    """
    version = GToolkit(descriptor, console=console).get_gtoolkit_version()
    host = paths_for(descriptor.host)
    archive = release_path(template, version, host.os_name, host.arch)
    return zip_entries(archive, package_entries(descriptor, ignore_absent=False))


__all__ = [
    "IMAGE_FILE_PATTERNS",
    "PackagingError",
    "package_entries",
    "package_release",
    "package_tentative",
    "release_path",
    "unpackage_tentative",
    "zip_entries",
]
