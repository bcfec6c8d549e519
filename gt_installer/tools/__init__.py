"""Installer tool operations.

This module handles:
- Building a workspace from scratch
- Setting up, testing and starting a built image
- Copying, renaming and cleaning up a workspace
- Packaging tentative and release archives
"""

from gt_installer.tools.build import (
    BuildOptions,
    BuildPipeline,
    KeyDoesNotExistError,
    SshKeysConfigurationError,
    WorkspaceAlreadyExistsError,
)
from gt_installer.tools.image_setup import SetupOptions, setup_image
from gt_installer.tools.maintenance import (
    clean_up,
    copy_to,
    rename_to,
    start,
    use_app_cli_binary,
)
from gt_installer.tools.packaging import (
    PackagingError,
    package_release,
    package_tentative,
    unpackage_tentative,
)
from gt_installer.tools.tester import run_image_tests

__all__ = [
    # Build
    "BuildOptions",
    "BuildPipeline",
    "KeyDoesNotExistError",
    "SshKeysConfigurationError",
    "WorkspaceAlreadyExistsError",
    # Setup and testing
    "SetupOptions",
    "run_image_tests",
    "setup_image",
    # Maintenance
    "clean_up",
    "copy_to",
    "rename_to",
    "start",
    "use_app_cli_binary",
    # Packaging
    "PackagingError",
    "package_release",
    "package_tentative",
    "unpackage_tentative",
]
