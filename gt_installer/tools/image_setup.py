"""Post-build image setup.

This module handles:
- Preparing a built image for local development or for a release
- Reporting the runtime version
- Opening the default world once setup is done
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rich.console import Console

from gt_installer.smalltalk.gtoolkit import GToolkit
from gt_installer.smalltalk.templates import START_GT, START_GT_TEMPLATE, write_script
from gt_installer.types import SetupTarget, Version, VersionBump
from gt_installer.workspace.descriptor import WorkspaceDescriptor

logger = logging.getLogger(__name__)


@dataclass
class SetupOptions:
    """Options for image setup.

    Attributes:
        target: Local development build or release.
        bump: Version component bumped by a release setup.
        gt_world: Open the default world after setup.
    """

    target: SetupTarget = SetupTarget.LOCAL_BUILD
    bump: VersionBump = VersionBump.PATCH
    gt_world: bool = True


def setup_image(
    descriptor: WorkspaceDescriptor,
    options: SetupOptions | None = None,
    console: Console | None = None,
) -> Version:
    """Run the setup for ``options.target`` and return the runtime version.

    Raises:
        CommandExecutionFailed: If any interpreter step fails.
    """
    options = options or SetupOptions()
    console = console or Console()
    gtoolkit = GToolkit(descriptor, console=console)

    if options.target is SetupTarget.LOCAL_BUILD:
        console.print("[blue]Setting up for local build...[/blue]")
        gtoolkit.perform_setup_for_local_build()
    else:
        console.print("[blue]Setting up for release...[/blue]")
        gtoolkit.perform_setup_for_release(options.bump)
        gtoolkit.print_new_commits()

    app_version = gtoolkit.get_app_version()
    console.print(f"Runtime version: {app_version}")

    if options.gt_world:
        console.print("[blue]Setting up GtWorld...[/blue]")
        write_script(descriptor.workspace / START_GT, START_GT_TEMPLATE)
        gtoolkit.run(gtoolkit.script(START_GT, should_quit=False, interactive=True))

    console.print("To start GlamorousToolkit run:")
    console.print(f"  cd {descriptor.workspace}")
    console.print(f"  {descriptor.app_executable()}")
    return app_version


__all__ = ["SetupOptions", "setup_image"]
