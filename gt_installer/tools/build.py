"""Build pipeline for a fresh Glamorous Toolkit image.

This module handles:
- Creating (or replacing) the workspace directory
- Persisting the workspace state before any long running stage
- Fetching and expanding the runtime, base VM and seed archives
- Adopting the seed image under the workspace's image name
- Writing and running the stage scripts

Stages run strictly one after another; only fetching and expanding fan out.
Any failure aborts the build and propagates unchanged.
"""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path

import httpx
from rich.console import Console
from rich.progress import Progress

from gt_installer.config import Settings, get_settings
from gt_installer.errors import InstallerError
from gt_installer.smalltalk.gtoolkit import ssh_keys_expression
from gt_installer.smalltalk.sequencer import ScriptSequencer, ScriptStep
from gt_installer.smalltalk.templates import (
    LOAD_GT,
    LOAD_PATCHES,
    LOAD_PATCHES_TEMPLATE,
    LOAD_TASKIT,
    LOAD_TASKIT_TEMPLATE,
    loader_template,
    write_script,
)
from gt_installer.transfer.download import ConcurrentFetcher, DownloadResult
from gt_installer.transfer.relocate import relocate
from gt_installer.transfer.unpack import ArchiveExpander, UnpackResult
from gt_installer.types import Loader
from gt_installer.workspace.descriptor import WorkspaceDescriptor, canonicalize

logger = logging.getLogger(__name__)


class WorkspaceAlreadyExistsError(InstallerError):
    """Raised when building into an existing workspace without overwrite."""

    def __init__(self, workspace: Path) -> None:
        super().__init__(
            f"GToolkit already exists in {workspace}. Use --overwrite to replace it",
            code="workspace_exists",
        )
        self.workspace = workspace


class SshKeysConfigurationError(InstallerError):
    """Raised when only one half of an SSH key pair is given."""

    def __init__(self, missing: str) -> None:
        super().__init__(
            f"Both public and private SSH keys must be specified, {missing} key is missing",
            code="ssh_keys_configuration",
        )


class KeyDoesNotExistError(InstallerError):
    """Raised when a given SSH key file does not exist."""

    def __init__(self, kind: str, path: Path) -> None:
        super().__init__(
            f"Specified {kind} key does not exist: {path}", code="key_not_found"
        )
        self.path = path


@dataclass
class BuildOptions:
    """Options for a build.

    Attributes:
        overwrite: Delete an existing workspace before building.
        loader: How the toolkit code is loaded into the seed image.
        public_key: Public SSH key used when cloning repositories.
        private_key: Private SSH key used when cloning repositories.
    """

    overwrite: bool = False
    loader: Loader = Loader.CLONER
    public_key: Path | None = None
    private_key: Path | None = None

    def ssh_keys(self) -> tuple[Path, Path] | None:
        """Validated, absolute (public, private) key pair, or None.

        Raises:
            SshKeysConfigurationError: If only one of the keys is given.
            KeyDoesNotExistError: If a key file does not exist.
        """
        if self.public_key is None and self.private_key is None:
            return None
        if self.public_key is None:
            raise SshKeysConfigurationError("public")
        if self.private_key is None:
            raise SshKeysConfigurationError("private")
        if not self.public_key.exists():
            raise KeyDoesNotExistError("public", self.public_key)
        if not self.private_key.exists():
            raise KeyDoesNotExistError("private", self.private_key)
        return canonicalize(self.public_key), canonicalize(self.private_key)


class BuildPipeline:
    """Drives a build of one workspace from nothing to a loaded image."""

    def __init__(
        self,
        descriptor: WorkspaceDescriptor,
        options: BuildOptions | None = None,
        settings: Settings | None = None,
        console: Console | None = None,
        client: httpx.Client | None = None,
        download_progress: Progress | None = None,
        unpack_progress: Progress | None = None,
    ) -> None:
        self.descriptor = descriptor
        self.options = options or BuildOptions()
        self.settings = settings or get_settings()
        self.console = console or Console()
        self.client = client
        self.download_progress = download_progress
        self.unpack_progress = unpack_progress

    def run(self) -> None:
        """Run every stage in order.

        Raises:
            InstallerError: The first stage error, unchanged.
        """
        started = time.monotonic()
        ssh_keys = self.options.ssh_keys()

        self.console.print("[blue]Checking the system...[/blue]")
        self.prepare_workspace()
        self.descriptor.save()

        self.console.print("[blue]Downloading files...[/blue]")
        self.fetch()

        self.console.print("[blue]Extracting files...[/blue]")
        self.expand()

        if not self.descriptor.is_seeded_from_image:
            self.console.print("[blue]Moving files...[/blue]")
            self.adopt_seed()

        self.console.print("[blue]Creating build scripts...[/blue]")
        self.write_scripts()

        self.console.print("[blue]Building the image...[/blue]")
        self.prepare_seed()
        self.load_toolkit(ssh_keys)

        elapsed = time.monotonic() - started
        self.console.print(f"[green]✓ Done in {elapsed:.0f}s[/green]")

    # Stages

    def prepare_workspace(self) -> Path:
        """Create the workspace directory, replacing it if asked to.

        A workspace anchored to an existing image already holds that image,
        so it is reused as is.

        Raises:
            WorkspaceAlreadyExistsError: If it exists and overwrite is off.
        """
        workspace = self.descriptor.workspace
        if self.descriptor.is_seeded_from_image:
            workspace.mkdir(parents=True, exist_ok=True)
            return workspace

        if self.options.overwrite and workspace.exists():
            logger.info("Removing existing workspace %s", workspace)
            shutil.rmtree(workspace)
        if workspace.exists():
            raise WorkspaceAlreadyExistsError(workspace)

        workspace.mkdir(parents=True)
        logger.info("Created workspace %s", workspace)
        return workspace

    def fetch(self) -> list[DownloadResult]:
        tasks = [self.descriptor.app_download_task()]
        base_vm = self.descriptor.base_vm_download_task()
        if base_vm is not None:
            tasks.append(base_vm)
        seed = self.descriptor.seed_download_task()
        if seed is not None:
            tasks.append(seed)

        fetcher = ConcurrentFetcher(
            client=self.client,
            max_concurrent=self.settings.max_concurrent_downloads,
            progress=self.download_progress,
            head_timeout=self.settings.head_timeout,
            timeout=self.settings.download_timeout,
        )
        return fetcher.fetch(tasks)

    def expand(self) -> list[UnpackResult]:
        tasks = [self.descriptor.app_unpack_task()]
        if self.descriptor.base_vm_download_task() is not None:
            tasks.append(self.descriptor.base_vm_unpack_task())
        seed = self.descriptor.seed_unpack_task()
        if seed is not None:
            tasks.append(seed)

        expander = ArchiveExpander(
            max_concurrent=self.settings.max_concurrent_unpacks,
            progress=self.unpack_progress,
        )
        return expander.expand(tasks)

    def adopt_seed(self) -> Path:
        """Move the seed's image, changes and sources into the workspace.

        The image is re-saved under the workspace's image name when the seed
        uses a different one.

        Raises:
            NoMatchError: If the seed lacks one of the three files.
            AmbiguousMatchError: If the seed has more than one of them.
        """
        seed_directory = self.descriptor.seed_image_directory()
        target = self.descriptor.target_image_directory()

        image = relocate(r"\.image$", seed_directory, target)
        relocate(r"\.changes$", seed_directory, target)
        relocate(r"\.sources$", seed_directory, target)

        if image.stem != self.descriptor.image_name:
            logger.info("Saving %s as %s", image.name, self.descriptor.image_name)
            self._sequencer().add(
                ScriptStep.command(
                    self._base_executable(),
                    image,
                    "save",
                    self.descriptor.image_name,
                    "--delete-old",
                )
            ).execute()
        return self.descriptor.image

    def write_scripts(self) -> list[Path]:
        workspace = self.descriptor.workspace
        version = self.descriptor.image_version
        scripts = [
            (LOAD_PATCHES, LOAD_PATCHES_TEMPLATE),
            (LOAD_TASKIT, LOAD_TASKIT_TEMPLATE),
            (LOAD_GT, loader_template(self.options.loader)),
        ]
        return [
            write_script(workspace / name, template, image_version=version)
            for name, template in scripts
        ]

    def prepare_seed(self) -> None:
        """Load patches and TaskIt into the seed with the base VM."""
        executable = self._base_executable()
        image = self.descriptor.image
        self._sequencer().add(
            ScriptStep.script(executable, image, LOAD_PATCHES, should_save=True)
        ).add(
            ScriptStep.script(executable, image, LOAD_TASKIT, should_save=True)
        ).execute()

    def load_toolkit(self, ssh_keys: tuple[Path, Path] | None = None) -> None:
        """Load the toolkit with its own runtime, configuring keys first."""
        executable = self.descriptor.app_cli()
        image = self.descriptor.image
        sequencer = self._sequencer()
        if ssh_keys is not None:
            public_key, private_key = ssh_keys
            sequencer.add(
                ScriptStep.expression(
                    executable,
                    image,
                    ssh_keys_expression(public_key, private_key),
                    should_save=True,
                )
            )
        sequencer.add(ScriptStep.script(executable, image, LOAD_GT, should_save=True))
        sequencer.execute()

    def _sequencer(self) -> ScriptSequencer:
        return ScriptSequencer(
            self.descriptor.workspace,
            verbose=self.descriptor.verbose,
            console=self.console,
        )

    def _base_executable(self) -> Path:
        # Targets without a separate base VM prepare the seed with the runtime
        return self.descriptor.base_vm_executable() or self.descriptor.app_cli()


__all__ = [
    "BuildOptions",
    "BuildPipeline",
    "KeyDoesNotExistError",
    "SshKeysConfigurationError",
    "WorkspaceAlreadyExistsError",
]
