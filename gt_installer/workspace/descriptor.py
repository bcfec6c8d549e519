"""Persistent workspace state.

The WorkspaceDescriptor pins the runtime and image versions, the image name
and where the seed image came from. It is stored as YAML in a single state
file inside the workspace; the presence of that file is what distinguishes
an existing workspace from a new one.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationError,
)

from gt_installer.config import DEFAULT_SEED_URL
from gt_installer.errors import InstallerError
from gt_installer.platform import PlatformTarget, paths_for, resolve_host
from gt_installer.transfer.download import DownloadTask
from gt_installer.transfer.relocate import find_entries
from gt_installer.transfer.unpack import UnpackTask
from gt_installer.types import Version
from gt_installer.workspace.seed import (
    ImageSeed,
    SeedFromImage,
    SeedFromUrl,
    SeedFromZip,
)
from gt_installer.workspace.versions import VersionOracle

logger = logging.getLogger(__name__)

STATE_FILE_NAME = "gtoolkit.yaml"
DEFAULT_IMAGE_NAME = "GlamorousToolkit"
DEFAULT_IMAGE_EXTENSION = "image"

SEED_ARCHIVE_NAME = "seed-image.zip"
SEED_DIRECTORY_NAME = "seed-image"
BASE_VM_ARCHIVE_NAME = "pharo-vm.zip"
BASE_VM_DIRECTORY_NAME = "pharo-vm"
EXTRA_DIRECTORY_NAME = "gt-extra"


class StateFileNotFoundError(InstallerError):
    """Raised when a workspace has no state file."""

    def __init__(self, state_file: Path) -> None:
        super().__init__(
            f"Workspace state file does not exist: {state_file}",
            code="state_not_found",
        )
        self.state_file = state_file


class SerializationError(InstallerError):
    """Raised when the state file cannot be read, parsed or written."""

    def __init__(self, message: str, state_file: Path) -> None:
        super().__init__(message, code="serialization_error")
        self.state_file = state_file


class CanonicalizeError(InstallerError):
    """Raised when a path cannot be made absolute."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(
            f"Failed to canonicalize a path {path}: {reason}", code="canonicalize_error"
        )
        self.path = path


class ImageNameError(InstallerError):
    """Raised when an image path lacks a usable name or extension."""

    def __init__(self, path: Path, what: str) -> None:
        super().__init__(
            f"Failed to read the file {what} of {path}", code="image_name_error"
        )
        self.path = path


def _coerce_version(value: Any) -> Any:
    if isinstance(value, str):
        return Version.parse(value)
    return value


VersionField = Annotated[
    Version,
    BeforeValidator(_coerce_version),
    PlainSerializer(str, return_type=str),
]


def canonicalize(path: Path) -> Path:
    """Return the absolute, symlink-free form of an existing path.

    Raises:
        CanonicalizeError: If the path does not exist or cannot be resolved.
    """
    try:
        return path.expanduser().resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise CanonicalizeError(path, str(e)) from e


class WorkspaceDescriptor(BaseModel):
    """State of one workspace.

    ``workspace``, ``verbose`` and ``host`` travel with the descriptor but are
    not written to the state file; the workspace is re-anchored to wherever
    the file was loaded from.
    """

    model_config = ConfigDict(extra="ignore")

    workspace: Path = Field(exclude=True)
    verbose: bool = Field(default=False, exclude=True)
    host: PlatformTarget = Field(default_factory=resolve_host, exclude=True)

    app_version: VersionField
    image_version: VersionField
    image_name: str = DEFAULT_IMAGE_NAME
    image_extension: str = DEFAULT_IMAGE_EXTENSION
    image_seed: ImageSeed = Field(default_factory=lambda: SeedFromUrl(url=DEFAULT_SEED_URL))
    app_cli_binary: Path | None = None

    # Construction

    @staticmethod
    def state_file_for(workspace: Path) -> Path:
        return workspace / STATE_FILE_NAME

    @classmethod
    def exists_in(cls, workspace: Path) -> bool:
        """Whether ``workspace`` has been provisioned before."""
        return cls.state_file_for(workspace).is_file()

    @classmethod
    def load(cls, workspace: Path) -> WorkspaceDescriptor:
        """Deserialize the descriptor stored in ``workspace``.

        Raises:
            StateFileNotFoundError: If the state file is absent.
            SerializationError: If it cannot be read or does not validate.
        """
        state_file = cls.state_file_for(workspace)
        try:
            text = state_file.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise StateFileNotFoundError(state_file) from e
        except OSError as e:
            raise SerializationError(
                f"Failed to read serialized state file {state_file}: {e}", state_file
            ) from e

        try:
            data = yaml.safe_load(text) or {}
            if not isinstance(data, dict):
                raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
            data["workspace"] = workspace
            descriptor = cls.model_validate(data)
        except (yaml.YAMLError, ValidationError, ValueError) as e:
            raise SerializationError(
                f"Failed to parse serialized state file {state_file}: {e}", state_file
            ) from e

        logger.debug("Loaded workspace state from %s", state_file)
        return descriptor

    @classmethod
    def provision_new(
        cls,
        workspace: Path,
        oracle: VersionOracle,
        seed_url: str = DEFAULT_SEED_URL,
    ) -> WorkspaceDescriptor:
        """Create a descriptor pinned to the latest released versions.

        Raises:
            VersionNotFoundError: If either version cannot be discovered.
            DownloadError: If the oracle cannot be reached.
        """
        app_version = oracle.latest_app_version()
        image_version = oracle.latest_image_version()
        logger.info(
            "Provisioning %s with app v%s and image v%s",
            workspace,
            app_version,
            image_version,
        )
        return cls(
            workspace=workspace,
            app_version=app_version,
            image_version=image_version,
            image_seed=SeedFromUrl(url=seed_url),
        )

    @classmethod
    def for_workspace(
        cls,
        workspace: Path,
        oracle: VersionOracle,
        seed_url: str = DEFAULT_SEED_URL,
    ) -> WorkspaceDescriptor:
        """Load the workspace if it has a state file, otherwise provision it."""
        if cls.exists_in(workspace):
            return cls.load(workspace)
        return cls.provision_new(workspace, oracle, seed_url=seed_url)

    # Persistence

    @property
    def state_file(self) -> Path:
        return self.state_file_for(self.workspace)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.model_dump(mode="json"), sort_keys=False)

    def save(self) -> Path:
        """Write the state file, replacing any previous one.

        Raises:
            SerializationError: If the file cannot be written.
        """
        state_file = self.state_file
        try:
            state_file.write_text(self.to_yaml(), encoding="utf-8")
        except OSError as e:
            raise SerializationError(
                f"Failed to write serialized state file {state_file}: {e}", state_file
            ) from e
        logger.debug("Saved workspace state to %s", state_file)
        return state_file

    # Image and seed

    @property
    def image(self) -> Path:
        """Path to the primary image file."""
        return self.workspace / f"{self.image_name}.{self.image_extension}"

    def set_image_seed(self, seed: SeedFromUrl | SeedFromZip | SeedFromImage) -> None:
        """Switch to a new seed.

        An existing image re-anchors the workspace to the image's directory and
        renames the image after the file.

        Raises:
            CanonicalizeError: If the image directory cannot be resolved.
            ImageNameError: If the image file has no name or extension.
        """
        if isinstance(seed, SeedFromImage):
            name = seed.path.stem
            extension = seed.path.suffix.lstrip(".")
            if not name:
                raise ImageNameError(seed.path, "name")
            if not extension:
                raise ImageNameError(seed.path, "extension")
            self.workspace = canonicalize(seed.path.parent)
            self.image_name = name
            self.image_extension = extension
        self.image_seed = seed

    @property
    def is_seeded_from_image(self) -> bool:
        return isinstance(self.image_seed, SeedFromImage)

    def seed_image_directory(self) -> Path:
        """Directory the seed image is unpacked into (or already lives in)."""
        if isinstance(self.image_seed, SeedFromImage):
            return self.image_seed.path.parent
        return self.workspace / SEED_DIRECTORY_NAME

    def target_image_directory(self) -> Path:
        """Directory the canonical image ends up in."""
        if isinstance(self.image_seed, SeedFromImage):
            return self.seed_image_directory()
        return self.workspace

    def seed_download_task(self) -> DownloadTask | None:
        if isinstance(self.image_seed, SeedFromUrl):
            return DownloadTask(self.image_seed.url, self.workspace, SEED_ARCHIVE_NAME)
        return None

    def seed_unpack_task(self) -> UnpackTask | None:
        if isinstance(self.image_seed, SeedFromUrl):
            return UnpackTask(self.workspace / SEED_ARCHIVE_NAME, self.seed_image_directory())
        if isinstance(self.image_seed, SeedFromZip):
            return UnpackTask(self.image_seed.path, self.seed_image_directory())
        return None

    # Runtime application

    def app_location(self, target: PlatformTarget | None = None) -> Path:
        """Where the runtime for ``target`` lives; the host's is the workspace itself."""
        target = target or self.host
        if target == self.host:
            return self.workspace
        return self.workspace / target.value

    def app_cli(self, target: PlatformTarget | None = None) -> Path:
        """Runtime CLI executable, honouring an explicit override."""
        if self.app_cli_binary is not None:
            return self.app_cli_binary
        target = target or self.host
        return self.app_location(target) / paths_for(target).executable_path

    def app_executable(self) -> Path:
        return self.app_location() / paths_for(self.host).app_entry_path

    def app_entries(self, target: PlatformTarget | None = None) -> list[Path]:
        """Top-level files and folders that make up the runtime app."""
        target = target or self.host
        location = self.app_location(target)
        entries: list[Path] = []
        for pattern in paths_for(target).app_entries:
            entries.extend(find_entries(pattern, location))
        return entries

    def app_archive_name(self) -> str:
        return f"GlamorousToolkitApp-v{self.app_version}.zip"

    def app_download_task(self, target: PlatformTarget | None = None) -> DownloadTask:
        target = target or self.host
        return DownloadTask(
            paths_for(target).vm_url(self.app_version),
            self.workspace,
            self.app_archive_name(),
        )

    def app_unpack_task(self, target: PlatformTarget | None = None) -> UnpackTask:
        return UnpackTask(self.workspace / self.app_archive_name(), self.app_location(target))

    # Base VM used to prepare the seed

    def base_vm_download_task(self) -> DownloadTask | None:
        url = paths_for(self.host).base_vm_url
        if url is None:
            return None
        return DownloadTask(url, self.workspace, BASE_VM_ARCHIVE_NAME)

    def base_vm_unpack_task(self) -> UnpackTask:
        return UnpackTask(
            self.workspace / BASE_VM_ARCHIVE_NAME,
            self.workspace / BASE_VM_DIRECTORY_NAME,
        )

    def base_vm_executable(self) -> Path | None:
        relative = paths_for(self.host).base_vm_executable
        if relative is None:
            return None
        return self.workspace / relative

    @property
    def extra_directory(self) -> Path:
        return self.workspace / EXTRA_DIRECTORY_NAME


__all__ = [
    "BASE_VM_ARCHIVE_NAME",
    "BASE_VM_DIRECTORY_NAME",
    "CanonicalizeError",
    "DEFAULT_IMAGE_EXTENSION",
    "DEFAULT_IMAGE_NAME",
    "EXTRA_DIRECTORY_NAME",
    "ImageNameError",
    "SEED_ARCHIVE_NAME",
    "SEED_DIRECTORY_NAME",
    "STATE_FILE_NAME",
    "SerializationError",
    "StateFileNotFoundError",
    "WorkspaceDescriptor",
    "canonicalize",
]
