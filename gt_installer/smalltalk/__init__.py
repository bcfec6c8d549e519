"""Smalltalk interpreter invocation.

This module handles:
- Building interpreter command lines from script steps
- Running steps in order with log redirection
- Stage script templates
- Toolkit operations built on top of the sequencer
"""

from gt_installer.smalltalk.expression import ExpressionBuilder, with_snapshot
from gt_installer.smalltalk.gtoolkit import (
    ExampleRunOptions,
    GToolkit,
    ssh_keys_expression,
)
from gt_installer.smalltalk.sequencer import (
    INSTALL_ERRORS_LOG,
    INSTALL_LOG,
    CommandExecutionFailed,
    ScriptSequencer,
    ScriptStep,
    StepKind,
    build_command,
)
from gt_installer.smalltalk.templates import TemplateError, render, write_script

__all__ = [
    # Expressions
    "ExpressionBuilder",
    "with_snapshot",
    # Sequencer
    "INSTALL_ERRORS_LOG",
    "INSTALL_LOG",
    "CommandExecutionFailed",
    "ScriptSequencer",
    "ScriptStep",
    "StepKind",
    "build_command",
    # Templates
    "TemplateError",
    "render",
    "write_script",
    # Toolkit
    "ExampleRunOptions",
    "GToolkit",
    "ssh_keys_expression",
]
