"""Where the initial image comes from.

A seed is one of three tagged variants. The ``kind`` tag is what ends up in
the state file.
"""

from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class SeedFromUrl(BaseModel):
    """Seed image archive downloaded from a URL."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["url"] = "url"
    url: str


class SeedFromZip(BaseModel):
    """Seed image archive already present on disk."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["zip"] = "zip"
    path: Path


class SeedFromImage(BaseModel):
    """An existing image file used in place."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["image"] = "image"
    path: Path


ImageSeed = Annotated[
    Union[SeedFromUrl, SeedFromZip, SeedFromImage],
    Field(discriminator="kind"),
]

__all__ = ["ImageSeed", "SeedFromImage", "SeedFromUrl", "SeedFromZip"]
