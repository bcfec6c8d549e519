"""Sequential execution of Smalltalk interpreter invocations.

This module handles:
- Translating a ScriptStep into the interpreter's command line
- Running steps in order, halting at the first failure
- Redirecting non-interactive output to append-mode log files
- Reading a single value back from the interpreter

Command line grammar:
    <executable> [<image>] st [--quit|--no-quit] [--save] [--interactive] <script>
    <executable> [<image>] eval [--no-quit] [--interactive] <expression>
    <executable> [<image>] <command> [<argument> ...]
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from rich.console import Console

from gt_installer.errors import InstallerError
from gt_installer.smalltalk.expression import with_snapshot
from gt_installer.types import StepStatus
from gt_installer.workspace.descriptor import canonicalize

logger = logging.getLogger(__name__)

INSTALL_LOG = "install.log"
INSTALL_ERRORS_LOG = "install-errors.log"


class CommandExecutionFailed(InstallerError):
    """Raised when an interpreter invocation exits non-zero or cannot start.

    Attributes:
        command: The full command line, ready to be re-run by hand.
        exit_code: Process exit code, or None if the process never ran.
    """

    def __init__(
        self,
        message: str,
        command: str,
        exit_code: int | None = None,
        code: str = "command_failed",
    ) -> None:
        super().__init__(message, code=code)
        self.command = command
        self.exit_code = exit_code


class StepKind(str, Enum):
    """How the step's target is handed to the interpreter."""

    SCRIPT = "script"
    EXPRESSION = "expression"
    COMMAND = "command"


@dataclass
class ScriptStep:
    """One interpreter invocation.

    Attributes:
        kind: Whether ``target`` is a script file, an expression or a command.
        executable: Interpreter executable, relative to the workspace or absolute.
        image: Image file passed as the first argument, if the step uses one.
        target: Script path, expression source or command verb.
        arguments: Extra arguments, only used by commands.
        should_quit: Quit the interpreter when the step is done.
        should_save: Persist the image when the step is done.
        interactive: Keep a UI and inherit the terminal.
        status: Lifecycle state, advanced by the sequencer.
    """

    kind: StepKind
    executable: Path
    image: Path | None
    target: str
    arguments: list[str] = field(default_factory=list)
    should_quit: bool = True
    should_save: bool = False
    interactive: bool = False
    status: StepStatus = StepStatus.PENDING

    @classmethod
    def script(
        cls, executable: Path, image: Path | None, script: str | Path, **flags: bool
    ) -> ScriptStep:
        return cls(StepKind.SCRIPT, executable, image, str(script), **flags)

    @classmethod
    def expression(
        cls, executable: Path, image: Path | None, source: str, **flags: bool
    ) -> ScriptStep:
        return cls(StepKind.EXPRESSION, executable, image, source, **flags)

    @classmethod
    def command(
        cls,
        executable: Path,
        image: Path | None,
        verb: str,
        *arguments: str,
        **flags: bool,
    ) -> ScriptStep:
        # Empty arguments stand for "flag not set" and are dropped
        return cls(
            StepKind.COMMAND,
            executable,
            image,
            verb,
            arguments=[argument for argument in arguments if argument],
            **flags,
        )

    @property
    def name(self) -> str:
        if self.kind is StepKind.COMMAND:
            return " ".join([self.target, *self.arguments])
        return self.target


def build_command(step: ScriptStep, workspace: Path) -> list[str]:
    """Compose the command line for a step.

    The executable is resolved against ``workspace`` and canonicalized,
    because the process runs with the workspace as its working directory.

    Raises:
        CanonicalizeError: If the executable does not exist.
    """
    executable = canonicalize(workspace / step.executable)
    cmd = [str(executable)]
    if step.image is not None:
        cmd.append(str(step.image))

    if step.kind is StepKind.SCRIPT:
        cmd.append("st")
        cmd.append("--quit" if step.should_quit else "--no-quit")
        if step.should_save:
            cmd.append("--save")
        if step.interactive:
            cmd.append("--interactive")
        cmd.append(step.target)
    elif step.kind is StepKind.EXPRESSION:
        cmd.append("eval")
        if not step.should_quit:
            cmd.append("--no-quit")
        if step.interactive:
            cmd.append("--interactive")
        cmd.append(with_snapshot(step.target) if step.should_save else step.target)
    else:
        cmd.append(step.target)
        cmd.extend(step.arguments)

    return cmd


class ScriptSequencer:
    """Runs a queue of steps one after another.

    Each step moves Pending -> Running -> Succeeded/Failed. A failed step
    stops the queue; the steps after it stay Pending.
    """

    def __init__(
        self,
        workspace: Path,
        verbose: bool = False,
        console: Console | None = None,
    ) -> None:
        self.workspace = workspace
        self.verbose = verbose
        self.console = console or Console()
        self.steps: list[ScriptStep] = []

    def add(self, step: ScriptStep) -> ScriptSequencer:
        self.steps.append(step)
        return self

    def execute(self) -> None:
        """Run all queued steps in order.

        Raises:
            CommandExecutionFailed: For the first step that fails.
            CanonicalizeError: If a step's executable does not exist.
        """
        total = len(self.steps)
        for index, step in enumerate(self.steps, start=1):
            prefix = f"[{index}/{total}]"
            step.status = StepStatus.RUNNING
            try:
                if self.verbose or step.interactive:
                    self.console.print(f"{prefix} Executing {step.name!r}")
                    self._run(step)
                else:
                    with self.console.status(f"{prefix} Executing {step.name!r}"):
                        self._run(step)
            except Exception:
                step.status = StepStatus.FAILED
                raise
            step.status = StepStatus.SUCCEEDED
            self.console.print(f"{prefix} Finished {step.name!r}")

    def _run(self, step: ScriptStep) -> None:
        cmd = build_command(step, self.workspace)
        cmd_str = shlex.join(cmd)
        logger.info("Executing: %s", cmd_str)
        logger.debug("Working directory: %s", self.workspace)

        try:
            if self.verbose or step.interactive:
                result = subprocess.run(cmd, cwd=self.workspace, check=False)
            else:
                with (
                    (self.workspace / INSTALL_LOG).open("ab") as stdout,
                    (self.workspace / INSTALL_ERRORS_LOG).open("ab") as stderr,
                ):
                    result = subprocess.run(
                        cmd,
                        cwd=self.workspace,
                        stdout=stdout,
                        stderr=stderr,
                        check=False,
                    )
        except OSError as e:
            raise CommandExecutionFailed(
                f"Failed to execute {cmd_str}: {e}",
                command=cmd_str,
                code="execution_error",
            ) from e

        if result.returncode != 0:
            logger.error("Step %r exited with code %d", step.name, result.returncode)
            raise CommandExecutionFailed(
                f"Command failed with exit code {result.returncode}: {cmd_str}. "
                f"See {INSTALL_LOG} or {INSTALL_ERRORS_LOG} for more info",
                command=cmd_str,
                exit_code=result.returncode,
            )

    def run_with_output(self, step: ScriptStep) -> str:
        """Run a single step and return its trimmed standard output.

        Raises:
            CommandExecutionFailed: If the process exits non-zero or its
                output is not valid UTF-8 text.
        """
        cmd = build_command(step, self.workspace)
        cmd_str = shlex.join(cmd)
        logger.info("Executing: %s", cmd_str)

        step.status = StepStatus.RUNNING
        try:
            result = subprocess.run(
                cmd,
                cwd=self.workspace,
                capture_output=True,
                check=False,
            )
        except OSError as e:
            step.status = StepStatus.FAILED
            raise CommandExecutionFailed(
                f"Failed to execute {cmd_str}: {e}",
                command=cmd_str,
                code="execution_error",
            ) from e

        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        if result.returncode != 0:
            step.status = StepStatus.FAILED
            raise CommandExecutionFailed(
                f"Command failed with exit code {result.returncode}: {cmd_str}. "
                f"Stderr: {stderr}",
                command=cmd_str,
                exit_code=result.returncode,
            )

        try:
            output = result.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            step.status = StepStatus.FAILED
            raise CommandExecutionFailed(
                f"Output of {cmd_str} is not valid text. Stderr: {stderr}",
                command=cmd_str,
                exit_code=result.returncode,
                code="decode_error",
            ) from e

        step.status = StepStatus.SUCCEEDED
        return output.strip()


__all__ = [
    "INSTALL_ERRORS_LOG",
    "INSTALL_LOG",
    "CommandExecutionFailed",
    "ScriptSequencer",
    "ScriptStep",
    "StepKind",
    "build_command",
]
