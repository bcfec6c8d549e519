"""Smoke tests for the CLI.

These tests verify CLI wiring without network access or a real
interpreter; long running operations are patched out.
"""

import json
import subprocess
from unittest.mock import patch

import httpx
import respx
from typer.testing import CliRunner

from gt_installer import __version__
from gt_installer.cli import app
from gt_installer.config import DEFAULT_SEED_URL
from gt_installer.platform import paths_for, resolve_host
from gt_installer.smalltalk.gtoolkit import ExampleRunOptions
from gt_installer.types import Version
from gt_installer.workspace.descriptor import STATE_FILE_NAME, WorkspaceDescriptor

runner = CliRunner()


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        """CLI --help should return exit code 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Glamorous Toolkit installer" in result.stdout

    def test_version_flag(self) -> None:
        """CLI --version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_short_version_flag(self) -> None:
        """CLI -V should print version and exit 0."""
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        """CLI with no args should show help."""
        result = runner.invoke(app, [])
        assert "Usage:" in result.stdout

    def test_commands_listed(self) -> None:
        """Every top-level command should be registered."""
        result = runner.invoke(app, ["--help"])
        for command in (
            "build",
            "setup",
            "local-build",
            "release-build",
            "test",
            "copy-to",
            "rename-to",
            "clean-up",
            "start",
            "package-tentative",
            "unpackage-tentative",
            "package-release",
            "print-image-version",
            "print-app-version",
            "print-debug",
        ):
            assert command in result.stdout


class TestCLIConfig:
    """Test CLI config command."""

    def test_config_command(self) -> None:
        """CLI config should show configuration."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Workspace" in result.stdout
        assert "Max downloads" in result.stdout

    def test_config_json(self) -> None:
        """CLI config --json should print parseable settings without secrets."""
        result = runner.invoke(
            app, ["config", "--json"], env={"GT_INSTALLER_GITHUB_TOKEN": "secret"}
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["max_concurrent_downloads"] == 2
        assert "github_token" not in data
        assert "secret" not in result.stdout


class TestCLIWorkspaceErrors:
    """Commands that need a built workspace."""

    def test_missing_state_file(self, tmp_path) -> None:
        """A missing state file should be reported, not raised."""
        result = runner.invoke(app, ["-w", str(tmp_path), "print-image-version"])
        assert result.exit_code == 1
        assert "Error:" in result.stdout
        assert "state file does not exist" in result.stdout

    def test_malformed_state_file(self, tmp_path) -> None:
        (tmp_path / "gtoolkit.yaml").write_text("- not\n- a mapping\n")
        result = runner.invoke(app, ["-w", str(tmp_path), "print-app-version"])
        assert result.exit_code == 1
        assert "Failed to parse" in result.stdout

    def test_conflicting_seeds(self, tmp_path) -> None:
        """Only one seed option may be given."""
        result = runner.invoke(
            app,
            [
                "-w",
                str(tmp_path / "gt"),
                "build",
                "--image-url",
                "https://example.com/seed.zip",
                "--image-zip",
                str(tmp_path / "seed.zip"),
            ],
        )
        assert result.exit_code == 2


class TestCLIWorkspace:
    """Commands run against a saved workspace."""

    def test_print_versions(self, gt_descriptor) -> None:
        gt_descriptor.save()
        workspace = str(gt_descriptor.workspace)

        image = runner.invoke(app, ["-w", workspace, "print-image-version"])
        app_version = runner.invoke(app, ["-w", workspace, "print-app-version"])

        assert image.exit_code == 0
        assert image.stdout.strip() == "1.0.1530"
        assert app_version.stdout.strip() == "1.0.7"

    def test_print_debug(self, gt_descriptor) -> None:
        """print-debug should describe the host and the workspace state."""
        gt_descriptor.save()
        result = runner.invoke(
            app, ["-w", str(gt_descriptor.workspace), "print-debug"]
        )
        assert result.exit_code == 0
        assert "Host target:" in result.stdout
        assert "Image version:    1.0.1530" in result.stdout

    def test_print_debug_without_state(self, tmp_path) -> None:
        result = runner.invoke(app, ["-w", str(tmp_path), "print-debug"])
        assert result.exit_code == 0
        assert "(none)" in result.stdout

    def test_test_command_options(self, gt_descriptor) -> None:
        """Test options should reach the test runner."""
        gt_descriptor.save()
        with patch("gt_installer.tools.tester.run_image_tests") as mock_tests:
            result = runner.invoke(
                app,
                [
                    "-w",
                    str(gt_descriptor.workspace),
                    "test",
                    "-p",
                    "GToolkit-Coder",
                    "--disable-tests",
                    "--skip-packages",
                    "Lepiter",
                ],
            )

        assert result.exit_code == 0
        descriptor, packages, options = mock_tests.call_args.args
        assert descriptor.workspace == gt_descriptor.workspace
        assert packages == ["GToolkit-Coder"]
        assert options == ExampleRunOptions(disable_tests=True, skip_packages=["Lepiter"])

    def test_copy_to(self, gt_descriptor, tmp_path) -> None:
        workspace = gt_descriptor.workspace
        for name in ("GlamorousToolkit.image", "GlamorousToolkit.changes", "Pharo.sources"):
            (workspace / name).write_bytes(b"")
        (workspace / "gt-extra").mkdir()
        gt_descriptor.save()
        destination = tmp_path / "copy"

        result = runner.invoke(
            app, ["-w", str(gt_descriptor.workspace), "copy-to", str(destination)]
        )

        assert result.exit_code == 0
        assert WorkspaceDescriptor.exists_in(destination)
        assert "Copied to" in result.stdout

    def test_unreadable_app_version(self, gt_descriptor, tmp_path) -> None:
        """A runtime binary that prints no version should be reported."""
        gt_descriptor.save()
        binary = tmp_path / "custom-cli"
        binary.write_text("#!/bin/sh\n")

        with patch("gt_installer.smalltalk.sequencer.subprocess.run") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(
                [], 0, stdout=b"unknown build\n", stderr=b""
            )
            result = runner.invoke(
                app,
                [
                    "-w",
                    str(gt_descriptor.workspace),
                    "--app-cli-binary",
                    str(binary),
                    "print-app-version",
                ],
            )

        assert result.exit_code == 1
        assert "Could not read a version" in result.stdout
        assert "unknown build" in result.stdout


class TestCLIBuild:
    """Build failures as seen from the command line."""

    @respx.mock(assert_all_called=False)
    def test_download_failure_keeps_state(self, tmp_path, respx_mock) -> None:
        """A missing archive fails the build, names the URL and keeps the state file."""
        api = "https://api.github.com/repos/feenkcom"
        respx_mock.get(f"{api}/gtoolkit-vm/releases/latest").mock(
            return_value=httpx.Response(200, json={"tag_name": "v1.0.7"})
        )
        respx_mock.get(f"{api}/gtoolkit/releases/latest").mock(
            return_value=httpx.Response(200, json={"tag_name": "v1.0.1530"})
        )

        host = paths_for(resolve_host())
        app_url = host.vm_url(Version(1, 0, 7))
        respx_mock.head(app_url).mock(return_value=httpx.Response(404))
        for url in (host.base_vm_url, DEFAULT_SEED_URL):
            if url is None:
                continue
            respx_mock.head(url).mock(return_value=httpx.Response(200))
            respx_mock.get(url).mock(return_value=httpx.Response(200, content=b"zip"))

        workspace = tmp_path / "gt"
        with patch("gt_installer.smalltalk.sequencer.subprocess.run") as mock_run:
            result = runner.invoke(app, ["-w", str(workspace), "build"])

        assert result.exit_code == 1
        assert "Error: Couldn't download URL" in result.stdout
        assert app_url in result.stdout
        assert (workspace / STATE_FILE_NAME).exists()
        assert WorkspaceDescriptor.load(workspace).app_version == Version(1, 0, 7)
        mock_run.assert_not_called()
