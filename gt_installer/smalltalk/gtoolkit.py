"""Glamorous Toolkit specific interpreter operations.

This module handles:
- Image setup for local builds and releases
- Reading the image and runtime versions back
- Running examples, tests, slides and the architectural report
- Clearing repository credentials before distribution
- Opening the default world and snapshotting it
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console

from gt_installer.smalltalk.expression import ExpressionBuilder
from gt_installer.smalltalk.sequencer import (
    CommandExecutionFailed,
    ScriptSequencer,
    ScriptStep,
    build_command,
)
from gt_installer.types import Version, VersionBump
from gt_installer.workspace.descriptor import WorkspaceDescriptor

logger = logging.getLogger(__name__)

DEFAULT_START_EXPRESSION = "GtWorld openDefault"
DEFAULT_START_DELAY = 5.0


@dataclass
class ExampleRunOptions:
    """Options for running examples and tests inside the image.

    Attributes:
        disable_deprecation_rewrites: Turn off automatic deprecation rewrites.
        disable_tests: Skip SUnit tests when packages are given.
        skip_packages: Packages excluded from example runs.
    """

    disable_deprecation_rewrites: bool = False
    disable_tests: bool = False
    skip_packages: list[str] = field(default_factory=list)


def ssh_keys_expression(public_key: Path, private_key: Path) -> str:
    """Expression that makes Iceberg use the given key pair."""
    return (
        ExpressionBuilder()
        .add("IceCredentialsProvider useCustomSsh: true")
        .add(
            "IceCredentialsProvider sshCredentials "
            f"publicKey: '{public_key}'; privateKey: '{private_key}'"
        )
        .build()
    )


class GToolkit:
    """Runs toolkit operations against a workspace's image and runtime."""

    def __init__(
        self, descriptor: WorkspaceDescriptor, console: Console | None = None
    ) -> None:
        self.descriptor = descriptor
        self.console = console or Console()

    def sequencer(self) -> ScriptSequencer:
        return ScriptSequencer(
            self.descriptor.workspace,
            verbose=self.descriptor.verbose,
            console=self.console,
        )

    def run(self, *steps: ScriptStep) -> None:
        sequencer = self.sequencer()
        for step in steps:
            sequencer.add(step)
        sequencer.execute()

    def expression(self, source: str, **flags: bool) -> ScriptStep:
        return ScriptStep.expression(
            self.descriptor.app_cli(), self.descriptor.image, source, **flags
        )

    def command(self, verb: str, *arguments: str, **flags: bool) -> ScriptStep:
        return ScriptStep.command(
            self.descriptor.app_cli(), self.descriptor.image, verb, *arguments, **flags
        )

    def script(self, script: str | Path, **flags: bool) -> ScriptStep:
        return ScriptStep.script(
            self.descriptor.app_cli(), self.descriptor.image, script, **flags
        )

    # Versions

    def read_version(self, step: ScriptStep) -> Version:
        """Run ``step`` and parse the first version in its output.

        Raises:
            CommandExecutionFailed: If the step fails or prints no version.
        """
        output = self.sequencer().run_with_output(step)
        try:
            return Version.search(output)
        except ValueError as e:
            command = shlex.join(build_command(step, self.descriptor.workspace))
            raise CommandExecutionFailed(
                f"Could not read a version from {command}: {e}",
                command=command,
                exit_code=0,
                code="version_parse_error",
            ) from e

    def get_gtoolkit_version(self) -> Version:
        """Version of the toolkit code loaded in the image."""
        return self.read_version(self.command("getgtoolkitversion"))

    def get_app_version(self) -> Version:
        """Version reported by the runtime CLI binary."""
        return self.read_version(
            ScriptStep.command(self.descriptor.app_cli(), None, "--version")
        )

    # Setup

    def perform_setup_for_local_build(self) -> None:
        self.run(self.expression("GtImageSetup performLocalSetup", should_save=True))

    def perform_setup_for_release(self, bump: VersionBump) -> None:
        self.run(
            self.expression(
                f"GtImageSetup performSetupForRelease: '{bump.value}'",
                should_save=True,
            )
        )

    def print_new_commits(self) -> None:
        self.run(self.command("printNewCommits"))

    def perform_iceberg_clean_up(self) -> None:
        """Forget repository credentials and registered repositories, then save."""
        source = (
            ExpressionBuilder()
            .add("IceCredentialsProvider sshCredentials publicKey: ''; privateKey: ''")
            .add("IceCredentialsProvider useCustomSsh: false")
            .add("IceRepository registry removeAll")
            .add("3 timesRepeat: [ Smalltalk garbageCollect ]")
            .build()
        )
        self.run(self.expression(source, should_save=True))

    def save_as(self, name: str) -> None:
        """Save the image under ``name`` and delete the old image file."""
        self.run(self.command("save", name, "--delete-old"))

    # Testing

    def _example_arguments(self, options: ExampleRunOptions) -> list[str]:
        arguments = ["--junit-xml-output"]
        if self.descriptor.verbose:
            arguments.append("--verbose")
        if options.disable_deprecation_rewrites:
            arguments.append("--disable-deprecation-rewrites")
        if options.skip_packages:
            arguments.append(f'--skip-packages="{",".join(options.skip_packages)}"')
        return arguments

    def run_examples(self, packages: list[str], options: ExampleRunOptions) -> None:
        self.run(self.command("examples", *packages, *self._example_arguments(options)))

    def run_release_examples(self, options: ExampleRunOptions) -> None:
        self.run(
            self.command("dedicatedReleaseBranchExamples", *self._example_arguments(options))
        )

    def run_release_slides(self, options: ExampleRunOptions) -> None:
        self.run(
            self.command("dedicatedReleaseBranchSlides", *self._example_arguments(options))
        )

    def run_tests(self, packages: list[str]) -> None:
        self.run(self.command("test", *packages, "--junit-xml-output"))

    def run_architectural_report(self) -> None:
        self.run(self.command("gtexportreport", "--report=GtGtoolkitArchitecturalReport"))

    # Starting

    def start(
        self,
        expression: str = DEFAULT_START_EXPRESSION,
        delay: float = DEFAULT_START_DELAY,
    ) -> None:
        """Open the world, wait ``delay`` seconds, then snapshot and quit."""
        source = (
            ExpressionBuilder()
            .add(expression)
            .add(f"{int(delay * 1000)} milliSeconds wait")
            .add(
                "GtSpaceTallyHistory recordDefaultSystemWideDataLabeled: "
                "'Open Default GtWorld End'"
            )
            .add("BlHost pickHost universe snapshot: true andQuit: true")
            .build()
        )
        self.run(self.expression(source, should_quit=False, interactive=True))


__all__ = [
    "DEFAULT_START_DELAY",
    "DEFAULT_START_EXPRESSION",
    "ExampleRunOptions",
    "GToolkit",
    "ssh_keys_expression",
]
