"""Stage scripts written into the workspace before they are run.

Templates use ``{{name}}`` placeholders, the same syntax accepted by
release package paths.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from gt_installer.errors import InstallerError
from gt_installer.types import Loader

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")

LOAD_PATCHES = "load-patches.st"
LOAD_TASKIT = "load-taskit.st"
LOAD_GT = "load-gt.st"
START_GT = "start-gt.st"

LOAD_PATCHES_TEMPLATE = """\
EpMonitor current disable.
Iceberg enableMetacelloIntegration: true.
Metacello new
	baseline: 'GToolkitReleaser';
	repository: 'github://feenkcom/gtoolkit-releaser:main/src';
	load.
"""

LOAD_TASKIT_TEMPLATE = """\
EpMonitor current disable.
Metacello new
	baseline: 'TaskIt';
	repository: 'github://feenkcom/taskit:main';
	load.
"""

CLONE_GT_TEMPLATE = """\
EpMonitor current disable.
Iceberg enableMetacelloIntegration: true.
(#GtRlClonerBaselineEventsReporter asClass on: Transcript) start.
#GtRlCloner asClass new
	cloneBaseline: 'GToolkit'
	fromRepository: 'github://feenkcom/gtoolkit:v{{image_version}}/src'.
EpMonitor current enable.
"""

LOAD_GT_TEMPLATE = """\
EpMonitor current disable.
Iceberg enableMetacelloIntegration: true.
Metacello new
	baseline: 'GToolkit';
	repository: 'github://feenkcom/gtoolkit:v{{image_version}}/src';
	load.
EpMonitor current enable.
"""

START_GT_TEMPLATE = """\
GtWorld openDefault.
"""

_LOADER_TEMPLATES = {
    Loader.CLONER: CLONE_GT_TEMPLATE,
    Loader.METACELLO: LOAD_GT_TEMPLATE,
}


class TemplateError(InstallerError):
    """Raised when a template references an unknown placeholder."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Unknown template placeholder: {{{{{name}}}}}", code="template_error"
        )
        self.name = name


def render(template: str, **values: object) -> str:
    """Replace ``{{name}}`` placeholders with ``values``.

    Raises:
        TemplateError: If a placeholder has no value.
    """

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in values:
            raise TemplateError(name)
        return str(values[name])

    return _PLACEHOLDER.sub(substitute, template)


def loader_template(loader: Loader) -> str:
    return _LOADER_TEMPLATES[loader]


def write_script(path: Path, template: str, **values: object) -> Path:
    """Render ``template`` and write it to ``path``, replacing any old file."""
    path.write_text(render(template, **values), encoding="utf-8")
    logger.debug("Wrote %s", path)
    return path


__all__ = [
    "CLONE_GT_TEMPLATE",
    "LOAD_GT",
    "LOAD_GT_TEMPLATE",
    "LOAD_PATCHES",
    "LOAD_PATCHES_TEMPLATE",
    "LOAD_TASKIT",
    "LOAD_TASKIT_TEMPLATE",
    "START_GT",
    "START_GT_TEMPLATE",
    "TemplateError",
    "loader_template",
    "render",
    "write_script",
]
