"""Running examples and tests inside a built image."""

from __future__ import annotations

import logging

from rich.console import Console

from gt_installer.smalltalk.gtoolkit import ExampleRunOptions, GToolkit
from gt_installer.workspace.descriptor import WorkspaceDescriptor

logger = logging.getLogger(__name__)


def run_image_tests(
    descriptor: WorkspaceDescriptor,
    packages: list[str] | None = None,
    options: ExampleRunOptions | None = None,
    console: Console | None = None,
) -> None:
    """Run examples (and tests) for ``packages``, or the release checks.

    Without packages this runs the release examples, the release slides and
    the architectural report.
    """
    options = options or ExampleRunOptions()
    gtoolkit = GToolkit(descriptor, console=console)

    if packages:
        logger.info("Running examples for %s", ", ".join(packages))
        gtoolkit.run_examples(packages, options)
        if not options.disable_tests:
            gtoolkit.run_tests(packages)
    else:
        gtoolkit.run_release_examples(options)
        gtoolkit.run_release_slides(options)
        gtoolkit.run_architectural_report()


__all__ = ["run_image_tests"]
