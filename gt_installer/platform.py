"""Platform targets and their path/URL lookup table.

Each supported (OS, architecture) pair is a PlatformTarget. Everything that
differs between platforms is looked up in a single table so the platform
matrix stays in one place.
"""

from __future__ import annotations

import platform
import sys
from dataclasses import dataclass
from enum import Enum

VM_RELEASES_BASE = "https://github.com/feenkcom/gtoolkit-vm/releases/download"

PHARO_VM_BASE = "https://files.pharo.org/get-files/120"


class UnsupportedPlatformError(RuntimeError):
    """Raised when the host OS/architecture has no matching target.

    This is not an InstallerError: there is no sensible fallback target, so
    it is allowed to abort the process.
    """


class PlatformTarget(str, Enum):
    """Supported (OS, architecture) combinations, named by target triple."""

    MACOS_X86_64 = "x86_64-apple-darwin"
    MACOS_AARCH64 = "aarch64-apple-darwin"
    WINDOWS_X86_64 = "x86_64-pc-windows-msvc"
    WINDOWS_AARCH64 = "aarch64-pc-windows-msvc"
    LINUX_X86_64 = "x86_64-unknown-linux-gnu"
    LINUX_AARCH64 = "aarch64-unknown-linux-gnu"
    ANDROID_AARCH64 = "aarch64-linux-android"

    @property
    def is_android(self) -> bool:
        return self is PlatformTarget.ANDROID_AARCH64


@dataclass(frozen=True)
class PlatformPaths:
    """Platform specific relative paths and download locations.

    Attributes:
        os_name: Human readable OS name used in release file names.
        arch: Architecture name used in release file names.
        executable_path: Runtime CLI executable, relative to the app location.
        app_entry_path: Runtime GUI executable, relative to the app location.
        vm_url_template: Runtime archive URL with a ``{version}`` placeholder.
        app_entries: Top-level names (glob patterns) that make up the app.
        base_vm_url: Archive of the base VM used to prepare the seed, if any.
        base_vm_executable: Base VM executable, relative to the workspace.
    """

    os_name: str
    arch: str
    executable_path: str
    app_entry_path: str
    vm_url_template: str
    app_entries: tuple[str, ...]
    base_vm_url: str | None
    base_vm_executable: str | None

    def vm_url(self, version: object) -> str:
        """Render the runtime archive URL for a runtime version."""
        return self.vm_url_template.format(version=version)


_MACOS_CLI = "GlamorousToolkit.app/Contents/MacOS/GlamorousToolkit-cli"
_MACOS_APP = "GlamorousToolkit.app/Contents/MacOS/GlamorousToolkit"
_MACOS_PHARO = "pharo-vm/Pharo.app/Contents/MacOS/Pharo"

_PLATFORM_TABLE: dict[PlatformTarget, PlatformPaths] = {
    PlatformTarget.MACOS_X86_64: PlatformPaths(
        os_name="MacOS",
        arch="x86_64",
        executable_path=_MACOS_CLI,
        app_entry_path=_MACOS_APP,
        vm_url_template=(
            VM_RELEASES_BASE
            + "/v{version}/GlamorousToolkit-x86_64-apple-darwin.app.zip"
        ),
        app_entries=("*.app",),
        base_vm_url=f"{PHARO_VM_BASE}/pharo-vm-Darwin-x86_64-stable.zip",
        base_vm_executable=_MACOS_PHARO,
    ),
    PlatformTarget.MACOS_AARCH64: PlatformPaths(
        os_name="MacOS",
        arch="aarch64",
        executable_path=_MACOS_CLI,
        app_entry_path=_MACOS_APP,
        vm_url_template=(
            VM_RELEASES_BASE
            + "/v{version}/GlamorousToolkit-aarch64-apple-darwin.app.zip"
        ),
        app_entries=("*.app",),
        base_vm_url=f"{PHARO_VM_BASE}/pharo-vm-Darwin-arm64-stable.zip",
        base_vm_executable=_MACOS_PHARO,
    ),
    PlatformTarget.WINDOWS_X86_64: PlatformPaths(
        os_name="Windows",
        arch="x86_64",
        executable_path="bin/GlamorousToolkit-cli.exe",
        app_entry_path="bin/GlamorousToolkit.exe",
        vm_url_template=(
            VM_RELEASES_BASE + "/v{version}/GlamorousToolkit-x86_64-pc-windows-msvc.zip"
        ),
        app_entries=("bin",),
        base_vm_url=f"{PHARO_VM_BASE}/pharo-vm-Windows-x86_64-stable.zip",
        base_vm_executable="pharo-vm/PharoConsole.exe",
    ),
    PlatformTarget.WINDOWS_AARCH64: PlatformPaths(
        os_name="Windows",
        arch="aarch64",
        executable_path="bin/GlamorousToolkit-cli.exe",
        app_entry_path="bin/GlamorousToolkit.exe",
        vm_url_template=(
            VM_RELEASES_BASE
            + "/v{version}/GlamorousToolkit-aarch64-pc-windows-msvc.zip"
        ),
        app_entries=("bin",),
        # Pharo ships no native arm64 Windows VM; the x86_64 one runs emulated
        base_vm_url=f"{PHARO_VM_BASE}/pharo-vm-Windows-x86_64-stable.zip",
        base_vm_executable="pharo-vm/PharoConsole.exe",
    ),
    PlatformTarget.LINUX_X86_64: PlatformPaths(
        os_name="Linux",
        arch="x86_64",
        executable_path="bin/GlamorousToolkit-cli",
        app_entry_path="bin/GlamorousToolkit",
        vm_url_template=(
            VM_RELEASES_BASE
            + "/v{version}/GlamorousToolkit-x86_64-unknown-linux-gnu.zip"
        ),
        app_entries=("bin", "lib"),
        base_vm_url=f"{PHARO_VM_BASE}/pharo-vm-Linux-x86_64-stable.zip",
        base_vm_executable="pharo-vm/pharo",
    ),
    PlatformTarget.LINUX_AARCH64: PlatformPaths(
        os_name="Linux",
        arch="aarch64",
        executable_path="bin/GlamorousToolkit-cli",
        app_entry_path="bin/GlamorousToolkit",
        vm_url_template=(
            VM_RELEASES_BASE
            + "/v{version}/GlamorousToolkit-aarch64-unknown-linux-gnu.zip"
        ),
        app_entries=("bin", "lib"),
        base_vm_url=f"{PHARO_VM_BASE}/pharo-vm-Linux-aarch64-stable.zip",
        base_vm_executable="pharo-vm/pharo",
    ),
    PlatformTarget.ANDROID_AARCH64: PlatformPaths(
        os_name="Android",
        arch="aarch64",
        executable_path="lib/arm64-v8a/libvm_client_android.so",
        app_entry_path="lib/arm64-v8a/libvm_client_android.so",
        vm_url_template=(
            VM_RELEASES_BASE + "/v{version}/GlamorousToolkit-aarch64-linux-android.apk"
        ),
        app_entries=("lib",),
        base_vm_url=None,
        base_vm_executable=None,
    ),
}

_OS_ALIASES = {
    "darwin": "macos",
    "linux": "linux",
    "windows": "windows",
    "android": "android",
}

_ARCH_ALIASES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "arm64": "aarch64",
    "aarch64": "aarch64",
}

_HOST_TABLE: dict[tuple[str, str], PlatformTarget] = {
    ("macos", "x86_64"): PlatformTarget.MACOS_X86_64,
    ("macos", "aarch64"): PlatformTarget.MACOS_AARCH64,
    ("windows", "x86_64"): PlatformTarget.WINDOWS_X86_64,
    ("windows", "aarch64"): PlatformTarget.WINDOWS_AARCH64,
    ("linux", "x86_64"): PlatformTarget.LINUX_X86_64,
    ("linux", "aarch64"): PlatformTarget.LINUX_AARCH64,
    ("android", "aarch64"): PlatformTarget.ANDROID_AARCH64,
}


def _host_os_name() -> str:
    if sys.platform == "android" or hasattr(sys, "getandroidapilevel"):
        return "android"
    return platform.system().lower()


def resolve_target(os_name: str, machine: str) -> PlatformTarget:
    """Map raw OS and machine identifiers to a PlatformTarget.

    Args:
        os_name: OS identifier as reported by ``platform.system()``.
        machine: Machine identifier as reported by ``platform.machine()``.

    Returns:
        The matching PlatformTarget.

    Raises:
        UnsupportedPlatformError: If the combination is not supported.
    """
    key = (
        _OS_ALIASES.get(os_name.lower(), os_name.lower()),
        _ARCH_ALIASES.get(machine.lower(), machine.lower()),
    )
    try:
        return _HOST_TABLE[key]
    except KeyError:
        raise UnsupportedPlatformError(
            f"Unsupported platform {os_name}-{machine}"
        ) from None


def resolve_host() -> PlatformTarget:
    """Return the PlatformTarget of the running interpreter."""
    return resolve_target(_host_os_name(), platform.machine())


def paths_for(target: PlatformTarget) -> PlatformPaths:
    """Return the path/URL bundle of a target."""
    return _PLATFORM_TABLE[target]


__all__ = [
    "PlatformPaths",
    "PlatformTarget",
    "UnsupportedPlatformError",
    "paths_for",
    "resolve_host",
    "resolve_target",
]
