"""Glamorous Toolkit installer - workspace build orchestration.

This package provisions a workspace, fetches and unpacks the runtime, the base
VM and a seed image, and drives the external script executions that turn the
seed into a Glamorous Toolkit image.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
