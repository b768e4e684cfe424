"""Exception types raised by the task helper."""

from __future__ import annotations

from pathlib import Path
from typing import Union


class TaskHelperError(Exception):
    """Base class for task helper failures."""


class HandlerError(TaskHelperError):
    """Raised when a user or built-in handler throws.

    The original exception is chained as ``__cause__``.
    """

    def __init__(self, handler_class: str, message: str = ""):
        self.handler_class = handler_class
        super().__init__(message or f"{handler_class} failed.")


class FileWriteError(TaskHelperError):
    """Raised when a required file cannot be read or written."""

    def __init__(self, path: Union[str, Path], reason: str = ""):
        self.path = Path(path)
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f'Can\'t write to file "{self.path}"{detail}.')


class ChangeStoreWriteError(FileWriteError):
    """Raised when the persisted change store cannot be written."""
