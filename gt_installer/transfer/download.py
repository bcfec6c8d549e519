"""Concurrent archive downloads.

This module handles:
- Probing each URL with HEAD to learn its size
- Streaming the body to disk in chunks with per-file progress
- Running several downloads at once with an aggregate "N of M" counter
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import httpx
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TextColumn,
    TransferSpeedColumn,
)

from gt_installer import __version__
from gt_installer.errors import InstallerError
from gt_installer.transfer.pool import run_bounded

logger = logging.getLogger(__name__)

# Timeout for HEAD requests (seconds)
HEAD_TIMEOUT = 30

# Timeout for downloads (seconds)
DOWNLOAD_TIMEOUT = 3600

# Chunk size for downloads (bytes)
DOWNLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB

# Concurrent transfers
MAX_CONCURRENT_DOWNLOADS = 2


class DownloadError(InstallerError):
    """Raised when a download fails."""

    def __init__(self, message: str, url: str, code: str = "download_error") -> None:
        """Initialize DownloadError.

        Args:
            message: Error description.
            url: URL that failed.
            code: Error code for structured error handling.
        """
        super().__init__(message, code=code)
        self.url = url


@dataclass(frozen=True)
class DownloadTask:
    """A remote file to place in a local directory."""

    url: str
    directory: Path
    file_name: str

    @property
    def path(self) -> Path:
        return self.directory / self.file_name


@dataclass
class DownloadResult:
    """Result of a single download."""

    path: Path
    size_bytes: int
    expected_bytes: int | None = None


def create_client() -> httpx.Client:
    """Create an HTTP client suitable for release downloads."""
    return httpx.Client(
        follow_redirects=True,
        headers={"User-Agent": f"gt-installer/{__version__}"},
    )


def probe_size(
    client: httpx.Client,
    url: str,
    timeout: float = HEAD_TIMEOUT,
) -> int | None:
    """Issue a HEAD request and return the advertised content length.

    A non-success status is a hard failure, not an unknown size.

    Returns:
        Content length in bytes, or None if the server did not send one.

    Raises:
        DownloadError: If the probe fails or returns a non-success status.
    """
    try:
        response = client.head(url, timeout=timeout)
    except httpx.TimeoutException as e:
        raise DownloadError(f"Timeout probing {url}", url, code="timeout") from e
    except httpx.RequestError as e:
        raise DownloadError(
            f"Network error probing {url}: {e}", url, code="network_error"
        ) from e

    if not response.is_success:
        raise DownloadError(
            f"Couldn't download URL: {url}. "
            f"Error: {response.status_code} {response.reason_phrase}",
            url,
            code="http_error",
        )

    length = response.headers.get("content-length")
    if length is None:
        return None
    try:
        return int(length)
    except ValueError:
        logger.debug("Ignoring malformed Content-Length %r for %s", length, url)
        return None


def download_file(
    client: httpx.Client,
    task: DownloadTask,
    progress: Progress | None = None,
    head_timeout: float = HEAD_TIMEOUT,
    timeout: float = DOWNLOAD_TIMEOUT,
    chunk_size: int = DOWNLOAD_CHUNK_SIZE,
    cancel: threading.Event | None = None,
) -> DownloadResult:
    """Download one file, reporting bytes to ``progress``.

    The partial file is removed whenever the download does not complete.

    Args:
        client: HTTPX client instance.
        task: What to download and where.
        progress: Optional progress display to add a bar to.
        head_timeout: Timeout for the size probe.
        timeout: Download timeout in seconds.
        chunk_size: Size of chunks to download.
        cancel: Stops the download between chunks once set.

    Returns:
        DownloadResult with path and size.

    Raises:
        DownloadError: If the probe or the download fails, or is cancelled.
    """
    expected = probe_size(client, task.url, timeout=head_timeout)

    bar: TaskID | None = None
    if progress is not None:
        bar = progress.add_task(task.file_name, total=expected)

    logger.info("Downloading %s to %s", task.url, task.path)
    dest_path = task.path
    cancelled = False

    try:
        with client.stream("GET", task.url, timeout=timeout) as response:
            response.raise_for_status()

            total_bytes = 0
            dest_path.parent.mkdir(parents=True, exist_ok=True)

            with dest_path.open("wb") as f:
                for chunk in response.iter_bytes(chunk_size):
                    if cancel is not None and cancel.is_set():
                        cancelled = True
                        break
                    f.write(chunk)
                    total_bytes += len(chunk)
                    if bar is not None:
                        progress.advance(bar, len(chunk))  # type: ignore[union-attr]

    except httpx.HTTPStatusError as e:
        dest_path.unlink(missing_ok=True)
        raise DownloadError(
            f"HTTP error downloading {task.url}: "
            f"{e.response.status_code} {e.response.reason_phrase}",
            task.url,
            code="http_error",
        ) from e
    except httpx.TimeoutException as e:
        dest_path.unlink(missing_ok=True)
        raise DownloadError(
            f"Timeout downloading {task.url}", task.url, code="timeout"
        ) from e
    except httpx.RequestError as e:
        dest_path.unlink(missing_ok=True)
        raise DownloadError(
            f"Network error downloading {task.url}: {e}",
            task.url,
            code="network_error",
        ) from e
    except OSError as e:
        dest_path.unlink(missing_ok=True)
        raise DownloadError(
            f"Failed to write {dest_path}: {e}", task.url, code="os_error"
        ) from e

    if cancelled:
        dest_path.unlink(missing_ok=True)
        raise DownloadError(
            f"Download of {task.url} was cancelled", task.url, code="cancelled"
        )

    if bar is not None:
        progress.update(bar, total=total_bytes, completed=total_bytes)  # type: ignore[union-attr]

    logger.info("Downloaded %s (%d bytes)", dest_path.name, total_bytes)
    return DownloadResult(path=dest_path, size_bytes=total_bytes, expected_bytes=expected)


def download_progress() -> Progress:
    """Create the progress display used for downloads."""
    return Progress(
        TextColumn("{task.description}"),
        BarColumn(bar_width=40),
        DownloadColumn(),
        TransferSpeedColumn(),
    )


class ConcurrentFetcher:
    """Downloads a set of files with bounded parallelism.

    The aggregate counter only advances when a download finishes, so it
    reads as a monotonic "N of M done".
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        max_concurrent: int = MAX_CONCURRENT_DOWNLOADS,
        progress: Progress | None = None,
        head_timeout: float = HEAD_TIMEOUT,
        timeout: float = DOWNLOAD_TIMEOUT,
    ) -> None:
        self.client = client
        self.max_concurrent = max_concurrent
        self.progress = progress
        self.head_timeout = head_timeout
        self.timeout = timeout
        self.completed = 0

    def fetch(self, tasks: Sequence[DownloadTask]) -> list[DownloadResult]:
        """Download every task, failing on the first error.

        Args:
            tasks: Files to download.

        Returns:
            Results in the order of ``tasks``.

        Raises:
            DownloadError: For the first download that fails.
        """
        self.completed = 0
        progress = self.progress or download_progress()
        owns_client = self.client is None
        client = self.client or create_client()

        total = progress.add_task("total", total=len(tasks))
        cancel = threading.Event()

        def on_complete(_task: DownloadTask, _result: DownloadResult) -> None:
            self.completed += 1
            progress.advance(total)

        def worker(task: DownloadTask) -> DownloadResult:
            return download_file(
                client,
                task,
                progress=progress,
                head_timeout=self.head_timeout,
                timeout=self.timeout,
                cancel=cancel,
            )

        # In-flight downloads are stopped and joined before the client closes
        try:
            with progress:
                results = run_bounded(
                    tasks,
                    worker,
                    max_workers=self.max_concurrent,
                    on_complete=on_complete,
                    on_abort=cancel.set,
                    name="download",
                )
            progress.update(total, description="done")
            return results
        finally:
            if owns_client:
                client.close()


__all__ = [
    "ConcurrentFetcher",
    "DOWNLOAD_CHUNK_SIZE",
    "DOWNLOAD_TIMEOUT",
    "DownloadError",
    "DownloadResult",
    "DownloadTask",
    "HEAD_TIMEOUT",
    "MAX_CONCURRENT_DOWNLOADS",
    "create_client",
    "download_file",
    "download_progress",
    "probe_size",
]
