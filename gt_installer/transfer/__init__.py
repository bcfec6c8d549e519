"""Moving bytes into the workspace.

This module handles:
- Downloading release archives concurrently with live progress
- Unpacking zip archives concurrently, skipping unsafe entries
- Locating single files by pattern and relocating them
"""

from gt_installer.transfer.download import (
    ConcurrentFetcher,
    DownloadError,
    DownloadResult,
    DownloadTask,
    download_file,
)
from gt_installer.transfer.relocate import (
    AmbiguousMatchError,
    FileMatchError,
    NoMatchError,
    copy_into,
    find_one,
    move_file,
    relocate,
)
from gt_installer.transfer.unpack import (
    ArchiveExpander,
    ExtractionError,
    UnpackResult,
    UnpackTask,
    safe_entry_path,
    unzip_archive,
)

__all__ = [
    # Download
    "ConcurrentFetcher",
    "DownloadError",
    "DownloadResult",
    "DownloadTask",
    "download_file",
    # Unpack
    "ArchiveExpander",
    "ExtractionError",
    "UnpackResult",
    "UnpackTask",
    "safe_entry_path",
    "unzip_archive",
    # Relocate
    "AmbiguousMatchError",
    "FileMatchError",
    "NoMatchError",
    "copy_into",
    "find_one",
    "move_file",
    "relocate",
]
