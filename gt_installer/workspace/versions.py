"""Latest-release lookups for the runtime and the image.

The version oracle is anything with ``latest_app_version()`` and
``latest_image_version()``. GitHubReleases answers both from the GitHub
releases API.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from gt_installer.config import Settings, get_settings
from gt_installer.errors import InstallerError
from gt_installer.transfer.download import DownloadError, create_client
from gt_installer.types import Version

logger = logging.getLogger(__name__)

# Timeout for release API requests (seconds)
API_TIMEOUT = 30


class VersionNotFoundError(InstallerError):
    """Raised when the latest released version cannot be discovered."""

    def __init__(self, owner: str, repository: str, reason: str) -> None:
        super().__init__(
            f"Failed to detect the latest released version of {owner}/{repository}: "
            f"{reason}",
            code="version_undiscoverable",
        )
        self.owner = owner
        self.repository = repository


class VersionOracle(Protocol):
    """Source of the latest runtime and image versions."""

    def latest_app_version(self) -> Version: ...

    def latest_image_version(self) -> Version: ...


class GitHubReleases:
    """Version oracle backed by ``/repos/{owner}/{repo}/releases/latest``."""

    def __init__(
        self,
        client: httpx.Client | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client or create_client()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.settings.github_token:
            headers["Authorization"] = f"Bearer {self.settings.github_token}"
        return headers

    def latest_version(self, owner: str, repository: str) -> Version:
        """Return the version of the latest release of a repository.

        Raises:
            VersionNotFoundError: If there is no release or its tag is not a version.
            DownloadError: If the API cannot be reached.
        """
        url = (
            f"{self.settings.github_api_base.rstrip('/')}"
            f"/repos/{owner}/{repository}/releases/latest"
        )
        logger.debug("Fetching latest release from %s", url)

        try:
            response = self.client.get(url, headers=self._headers(), timeout=API_TIMEOUT)
        except httpx.TimeoutException as e:
            raise DownloadError(f"Timeout fetching {url}", url, code="timeout") from e
        except httpx.RequestError as e:
            raise DownloadError(
                f"Network error fetching {url}: {e}", url, code="network_error"
            ) from e

        if response.status_code == 404:
            raise VersionNotFoundError(owner, repository, "no published release")
        if not response.is_success:
            raise DownloadError(
                f"HTTP error fetching {url}: {response.status_code}",
                url,
                code="http_error",
            )

        try:
            tag = response.json()["tag_name"]
            version = Version.parse(tag)
        except (ValueError, KeyError, TypeError) as e:
            raise VersionNotFoundError(owner, repository, str(e)) from e

        logger.info("Latest release of %s/%s is %s", owner, repository, version)
        return version

    def latest_app_version(self) -> Version:
        return self.latest_version(
            self.settings.vm_repository_owner, self.settings.vm_repository_name
        )

    def latest_image_version(self) -> Version:
        return self.latest_version(
            self.settings.image_repository_owner, self.settings.image_repository_name
        )


__all__ = ["GitHubReleases", "VersionNotFoundError", "VersionOracle"]
