"""Logging setup for the command-line entry point."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(
    level: str = "WARNING",
    verbose: bool = False,
    console: Console | None = None,
) -> None:
    """Install a rich handler on the root logger.

    Args:
        level: Logging level name from settings.
        verbose: Force DEBUG output regardless of level.
        console: Console to render log records on (stderr when omitted).
    """
    effective = logging.DEBUG if verbose else getattr(logging, level, logging.WARNING)
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, RichHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(effective)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(
        logging.DEBUG if verbose else logging.WARNING
    )


__all__ = ["configure_logging"]
