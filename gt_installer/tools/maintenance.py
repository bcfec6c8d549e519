"""Operations on an already built workspace.

This module handles:
- Copying the image and its runtime into another directory
- Renaming the image
- Clearing repository credentials
- Starting the image once and snapshotting it
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console

from gt_installer.smalltalk.gtoolkit import (
    DEFAULT_START_DELAY,
    DEFAULT_START_EXPRESSION,
    GToolkit,
)
from gt_installer.tools.packaging import package_entries
from gt_installer.transfer.relocate import copy_into
from gt_installer.types import Version
from gt_installer.workspace.descriptor import WorkspaceDescriptor, canonicalize
from gt_installer.workspace.seed import SeedFromImage

logger = logging.getLogger(__name__)


def copy_to(descriptor: WorkspaceDescriptor, destination: Path) -> WorkspaceDescriptor:
    """Copy the image files, state, ``gt-extra`` and runtime into ``destination``.

    Every entry is required, as for a package.

    Returns:
        A descriptor for the copy.

    Raises:
        NoMatchError: If an image file is missing.
        AmbiguousMatchError: If the workspace holds more than one image.
        PackagingError: If the state file or ``gt-extra`` is missing.
    """
    entries = package_entries(descriptor, ignore_absent=False)
    destination.mkdir(parents=True, exist_ok=True)
    for entry in entries:
        logger.debug("Copying %s", entry.name)
        copy_into(entry, destination)
    logger.info("Copied %s to %s", descriptor.workspace, destination)
    return descriptor.model_copy(update={"workspace": destination})


def rename_to(
    descriptor: WorkspaceDescriptor, name: str, console: Console | None = None
) -> Path:
    """Re-save the image as ``name`` and make it the workspace's image.

    Returns:
        Path to the renamed image.
    """
    current_image = descriptor.image
    current_changes = current_image.with_suffix(".changes")
    new_image = current_image.with_name(f"{name}.{descriptor.image_extension}")

    GToolkit(descriptor, console=console).save_as(name)

    if name != descriptor.image_name and current_changes.exists():
        current_changes.unlink()

    descriptor.set_image_seed(SeedFromImage(path=new_image))
    descriptor.save()
    logger.info("Renamed %s to %s", current_image.name, new_image.name)
    return new_image


def use_app_cli_binary(
    descriptor: WorkspaceDescriptor, binary: Path, console: Console | None = None
) -> Version:
    """Point the workspace at an explicit runtime binary and adopt its version.

    Raises:
        CanonicalizeError: If the binary does not exist.
        CommandExecutionFailed: If the binary cannot report its version.
    """
    descriptor.app_cli_binary = canonicalize(binary)
    descriptor.app_version = GToolkit(descriptor, console=console).get_app_version()
    logger.info("Using %s (v%s)", descriptor.app_cli_binary, descriptor.app_version)
    return descriptor.app_version


def clean_up(descriptor: WorkspaceDescriptor, console: Console | None = None) -> None:
    GToolkit(descriptor, console=console).perform_iceberg_clean_up()


def start(
    descriptor: WorkspaceDescriptor,
    expression: str = DEFAULT_START_EXPRESSION,
    delay: float = DEFAULT_START_DELAY,
    console: Console | None = None,
) -> None:
    GToolkit(descriptor, console=console).start(expression=expression, delay=delay)


__all__ = [
    "clean_up",
    "copy_to",
    "rename_to",
    "start",
    "use_app_cli_binary",
]
