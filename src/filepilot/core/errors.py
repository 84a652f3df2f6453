"""Error taxonomy shared by backends, transfers and search.

Backends translate their native failures (``OSError``, paramiko errors) into
these classes so that callers can tell a naming conflict apart from a real
I/O failure.
"""

from __future__ import annotations

from typing import Optional


class FilePilotError(Exception):
    """Base class for every error raised by filepilot."""


class ProviderError(FilePilotError):
    """I/O failure reported by a storage or search provider."""

    def __init__(self, message: str, *, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class NotFoundError(ProviderError):
    pass


class ConflictLimitError(ProviderError):
    """No free destination name was found within the retry ceiling."""


class ConflictError(FilePilotError):
    """Destination already occupied. Recovered locally by renaming."""

    def __init__(self, path: str):
        super().__init__(f"Destination already exists: {path}")
        self.path = path


class ValidationError(FilePilotError):
    """Invalid user input, rejected before any provider call."""


class OperationCancelledError(FilePilotError):
    """The operation was cancelled by the user."""
