"""Workspace state module.

This module handles:
- The persisted WorkspaceDescriptor and its YAML state file
- Image seed variants (URL, zip archive, existing image)
- Discovering the latest runtime and image releases
"""

from gt_installer.workspace.descriptor import (
    STATE_FILE_NAME,
    CanonicalizeError,
    ImageNameError,
    SerializationError,
    StateFileNotFoundError,
    WorkspaceDescriptor,
    canonicalize,
)
from gt_installer.workspace.seed import (
    ImageSeed,
    SeedFromImage,
    SeedFromUrl,
    SeedFromZip,
)
from gt_installer.workspace.versions import (
    GitHubReleases,
    VersionNotFoundError,
    VersionOracle,
)

__all__ = [
    # Descriptor
    "STATE_FILE_NAME",
    "CanonicalizeError",
    "ImageNameError",
    "SerializationError",
    "StateFileNotFoundError",
    "WorkspaceDescriptor",
    "canonicalize",
    # Seeds
    "ImageSeed",
    "SeedFromImage",
    "SeedFromUrl",
    "SeedFromZip",
    # Versions
    "GitHubReleases",
    "VersionNotFoundError",
    "VersionOracle",
]
