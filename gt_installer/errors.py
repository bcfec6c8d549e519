"""Base error type for gt_installer.

Concrete errors live next to the component that raises them. They all derive
from InstallerError so the CLI can report them uniformly.
"""


class InstallerError(Exception):
    """Base class for every recoverable installer failure."""

    def __init__(self, message: str, code: str = "installer_error") -> None:
        """Initialize InstallerError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.code = code


def format_error_chain(error: BaseException) -> list[str]:
    """Return the messages of an error and its causes, outermost first."""
    messages: list[str] = []
    current: BaseException | None = error
    while current is not None:
        text = str(current) or type(current).__name__
        messages.append(text)
        current = current.__cause__
    return messages


__all__ = ["InstallerError", "format_error_chain"]
