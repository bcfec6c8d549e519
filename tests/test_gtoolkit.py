"""Tests for toolkit operations run against an image."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from gt_installer.smalltalk.gtoolkit import (
    ExampleRunOptions,
    GToolkit,
    ssh_keys_expression,
)
from gt_installer.smalltalk.sequencer import CommandExecutionFailed
from gt_installer.types import Version, VersionBump

RUN = "gt_installer.smalltalk.sequencer.subprocess.run"


@pytest.fixture
def gtoolkit(gt_descriptor, console):
    return GToolkit(gt_descriptor, console=console)


def run_and_capture(action):
    """Run ``action`` with a succeeding subprocess and return the argv lists."""
    with patch(RUN) as mock_run:
        mock_run.return_value = MagicMock(returncode=0)
        action()
    return [call.args[0] for call in mock_run.call_args_list]


class TestSetup:
    """Tests for image setup operations."""

    def test_local_build(self, gtoolkit, gt_descriptor):
        """Should evaluate the local setup and snapshot."""
        (cmd,) = run_and_capture(gtoolkit.perform_setup_for_local_build)

        assert cmd[1] == str(gt_descriptor.image)
        assert cmd[2] == "eval"
        assert cmd[3].startswith("GtImageSetup performLocalSetup.")
        assert cmd[3].endswith("Smalltalk snapshot: true andQuit: false")

    def test_release(self, gtoolkit):
        """Should pass the bump to the release setup."""
        (cmd,) = run_and_capture(
            lambda: gtoolkit.perform_setup_for_release(VersionBump.MINOR)
        )
        assert "GtImageSetup performSetupForRelease: 'minor'" in cmd[-1]

    def test_save_as(self, gtoolkit):
        """Should use the save command and delete the old image."""
        (cmd,) = run_and_capture(lambda: gtoolkit.save_as("Renamed"))
        assert cmd[2:] == ["save", "Renamed", "--delete-old"]

    def test_iceberg_clean_up(self, gtoolkit):
        """Should clear credentials and repositories, then save."""
        (cmd,) = run_and_capture(gtoolkit.perform_iceberg_clean_up)
        assert "IceRepository registry removeAll" in cmd[-1]
        assert cmd[-1].endswith("Smalltalk snapshot: true andQuit: false")


class TestVersions:
    """Tests for reading versions back from the image and runtime."""

    def test_gtoolkit_version(self, gtoolkit):
        """Should parse the version printed by the image."""
        with patch(RUN) as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(
                [], 0, stdout=b"v1.0.1530\n", stderr=b""
            )
            assert gtoolkit.get_gtoolkit_version() == Version(1, 0, 1530)
        assert mock_run.call_args.args[0][2] == "getgtoolkitversion"

    def test_app_version_has_no_image(self, gtoolkit):
        """The runtime version is asked without an image argument."""
        with patch(RUN) as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(
                [], 0, stdout=b"GlamorousToolkit App v1.0.7\n", stderr=b""
            )
            assert gtoolkit.get_app_version() == Version(1, 0, 7)
        assert mock_run.call_args.args[0][1:] == ["--version"]

    def test_output_without_version(self, gtoolkit):
        """Output with no version in it should be an installer error."""
        with patch(RUN) as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(
                [], 0, stdout=b"unknown build\n", stderr=b""
            )
            with pytest.raises(CommandExecutionFailed) as exc_info:
                gtoolkit.get_app_version()

        assert exc_info.value.code == "version_parse_error"
        assert "--version" in exc_info.value.command
        assert "unknown build" in str(exc_info.value)

    def test_version_command_fails(self, gtoolkit):
        with patch(RUN) as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(
                [], 2, stdout=b"", stderr=b"boom"
            )
            with pytest.raises(CommandExecutionFailed):
                gtoolkit.get_gtoolkit_version()


class TestExamples:
    """Tests for example, test and report runs."""

    def test_examples_for_packages(self, gtoolkit):
        """Packages and options should map to command arguments."""
        options = ExampleRunOptions(
            disable_deprecation_rewrites=True, skip_packages=["GToolkit-Demo", "Lepiter"]
        )
        (cmd,) = run_and_capture(
            lambda: gtoolkit.run_examples(["GToolkit-Coder"], options)
        )
        assert cmd[2:] == [
            "examples",
            "GToolkit-Coder",
            "--junit-xml-output",
            "--disable-deprecation-rewrites",
            '--skip-packages="GToolkit-Demo,Lepiter"',
        ]

    def test_verbose_examples(self, gt_descriptor, console):
        gt_descriptor.verbose = True
        (cmd,) = run_and_capture(
            lambda: GToolkit(gt_descriptor, console).run_release_examples(
                ExampleRunOptions()
            )
        )
        assert cmd[2:] == ["dedicatedReleaseBranchExamples", "--junit-xml-output", "--verbose"]

    def test_tests_and_report(self, gtoolkit):
        cmds = run_and_capture(
            lambda: (
                gtoolkit.run_tests(["GToolkit-Coder"]),
                gtoolkit.run_architectural_report(),
            )
        )
        assert cmds[0][2:] == ["test", "GToolkit-Coder", "--junit-xml-output"]
        assert cmds[1][2:] == [
            "gtexportreport",
            "--report=GtGtoolkitArchitecturalReport",
        ]


class TestStart:
    """Tests for GToolkit.start."""

    def test_start_snapshots_after_delay(self, gtoolkit):
        """Should open the world, wait, and snapshot from the UI process."""
        (cmd,) = run_and_capture(lambda: gtoolkit.start(delay=2.5))

        assert cmd[2:4] == ["eval", "--no-quit"]
        assert "--interactive" in cmd
        source = cmd[-1]
        assert source.startswith("GtWorld openDefault.2500 milliSeconds wait.")
        assert source.endswith("BlHost pickHost universe snapshot: true andQuit: true")


class TestSshKeysExpression:
    """Tests for ssh_keys_expression function."""

    def test_expression(self):
        expression = ssh_keys_expression(Path("/keys/id.pub"), Path("/keys/id"))
        assert expression == (
            "IceCredentialsProvider useCustomSsh: true."
            "IceCredentialsProvider sshCredentials "
            "publicKey: '/keys/id.pub'; privateKey: '/keys/id'"
        )
