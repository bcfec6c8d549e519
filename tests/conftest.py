"""Shared fixtures for workspace level tests."""

import io

import pytest
from rich.console import Console

from gt_installer.platform import PlatformTarget
from gt_installer.types import Version
from gt_installer.workspace.descriptor import WorkspaceDescriptor


@pytest.fixture
def gt_workspace(tmp_path):
    """A Linux workspace holding fake runtime and base VM executables."""
    workspace = tmp_path / "gt"
    for relative in ("bin/GlamorousToolkit-cli", "pharo-vm/pharo"):
        executable = workspace / relative
        executable.parent.mkdir(parents=True, exist_ok=True)
        executable.write_text("#!/bin/sh\n")
    return workspace


@pytest.fixture
def gt_descriptor(gt_workspace):
    """Descriptor for ``gt_workspace`` pinned to fixed versions."""
    return WorkspaceDescriptor(
        workspace=gt_workspace,
        host=PlatformTarget.LINUX_X86_64,
        app_version=Version(1, 0, 7),
        image_version=Version(1, 0, 1530),
    )


@pytest.fixture
def console_output():
    return io.StringIO()


@pytest.fixture
def console(console_output):
    """Console writing into ``console_output`` without wrapping."""
    return Console(file=console_output, width=200)
