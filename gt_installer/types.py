"""Shared type definitions for gt_installer.

This module contains dataclasses, enums, and type aliases shared across
subpackages to avoid circular imports.
"""

import re
from dataclasses import dataclass
from enum import Enum

_VERSION_PATTERN = re.compile(r"v?(\d+)\.(\d+)\.(\d+)")


class StepStatus(str, Enum):
    """Status of a single external script step."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Loader(str, Enum):
    """Strategy used to load the toolkit code into the seed image."""

    CLONER = "cloner"
    METACELLO = "metacello"


class SetupTarget(str, Enum):
    """What the image is being set up for after a build."""

    LOCAL_BUILD = "local-build"
    RELEASE = "release"


class VersionBump(str, Enum):
    """Version component to bump when setting up for release."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


@dataclass(frozen=True, order=True)
class Version:
    """A semantic version of a released component."""

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse a version such as ``v1.0.3`` or ``1.0.3``.

        Args:
            text: Version string, optionally prefixed with ``v``.

        Returns:
            Parsed Version.

        Raises:
            ValueError: If the text is not a version.
        """
        match = _VERSION_PATTERN.fullmatch(text.strip())
        if match is None:
            raise ValueError(f"Not a semantic version: {text!r}")
        return cls(*(int(part) for part in match.groups()))

    @classmethod
    def search(cls, text: str) -> "Version":
        """Find the first version embedded in free-form text.

        Raises:
            ValueError: If the text contains no version.
        """
        match = _VERSION_PATTERN.search(text)
        if match is None:
            raise ValueError(f"No semantic version found in {text!r}")
        return cls(*(int(part) for part in match.groups()))

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


__all__ = [
    "Loader",
    "SetupTarget",
    "StepStatus",
    "Version",
    "VersionBump",
]
