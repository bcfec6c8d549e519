"""Tests for configuration module."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from gt_installer.config import (
    DEFAULT_SEED_URL,
    Settings,
    get_settings,
    print_settings_json,
)


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self) -> None:
        """Settings should have sensible defaults."""
        settings = Settings()

        assert settings.workspace == Path.cwd() / "glamoroustoolkit"
        assert settings.max_concurrent_downloads == 2
        assert settings.max_concurrent_unpacks == 2
        assert settings.default_seed_url == DEFAULT_SEED_URL
        assert settings.vm_repository_name == "gtoolkit-vm"
        assert settings.image_repository_name == "gtoolkit"
        assert settings.github_token is None

    def test_settings_from_env(self) -> None:
        """Settings should be loadable from environment variables."""
        with patch.dict(
            os.environ,
            {
                "GT_INSTALLER_WORKSPACE": "/tmp/gt-workspace",
                "GT_INSTALLER_LOG_LEVEL": "DEBUG",
                "GT_INSTALLER_MAX_CONCURRENT_DOWNLOADS": "4",
            },
        ):
            settings = Settings()
            assert settings.workspace == Path("/tmp/gt-workspace")
            assert settings.log_level == "DEBUG"
            assert settings.max_concurrent_downloads == 4

    def test_concurrency_bounds(self) -> None:
        """Concurrency limits should be validated."""
        with (
            patch.dict(os.environ, {"GT_INSTALLER_MAX_CONCURRENT_UNPACKS": "0"}),
            pytest.raises(ValidationError),
        ):
            Settings()

    def test_get_settings(self) -> None:
        """get_settings should return a Settings instance."""
        assert isinstance(get_settings(), Settings)


class TestPrintSettingsJson:
    """Test print_settings_json function."""

    def test_valid_json(self) -> None:
        """Output should be valid JSON with the effective values."""
        data = json.loads(print_settings_json(Settings()))
        assert data["max_concurrent_downloads"] == 2
        assert "workspace" in data

    def test_token_is_not_printed(self) -> None:
        """The GitHub token should never be rendered."""
        with patch.dict(os.environ, {"GT_INSTALLER_GITHUB_TOKEN": "secret-token"}):
            output = print_settings_json(Settings())
        assert "secret-token" not in output
        assert "github_token" not in json.loads(output)
