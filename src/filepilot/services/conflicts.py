from __future__ import annotations

import os
from typing import Awaitable, Callable, Optional

from filepilot.core.cancel import CancelToken, check
from filepilot.core.errors import ConflictError, ConflictLimitError
from filepilot.core.logging import get_logger
from filepilot.services.files_base import FilesBackend

Writer = Callable[[str], Awaitable[None]]


def split_name(name: str, is_dir: bool = False):
    """Split into (base, ext); directories and dot-files keep their whole name."""
    if is_dir:
        return name, ""
    return os.path.splitext(name)


def candidate_name(name: str, n: int, is_dir: bool = False) -> str:
    base, ext = split_name(name, is_dir)
    return f"{base} ({n}){ext}"


class ConflictResolver:
    """Derives ``"<base> (<n>)<ext>"`` names for occupied destinations.

    Occupancy is decided by an explicit ``exists`` check, never by inferring
    it from a failed write, and the number of candidates is bounded.
    """

    def __init__(self, files: FilesBackend, max_attempts: int = 100):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.files = files
        self.max_attempts = max_attempts
        self.logger = get_logger("filepilot.conflicts")

    def _candidates(self, name: str, is_dir: bool):
        yield name
        for n in range(1, self.max_attempts):
            yield candidate_name(name, n, is_dir)

    async def first_free_name(self, dest_dir: str, name: str, is_dir: bool = False) -> str:
        for cand in self._candidates(name, is_dir):
            if not await self.files.exists(self.files.join(dest_dir, cand)):
                return cand
        raise ConflictLimitError(
            f"No free name for {name!r} after {self.max_attempts} attempts",
            path=self.files.join(dest_dir, name),
        )

    async def write_unique(
        self,
        dest_dir: str,
        name: str,
        writer: Writer,
        *,
        is_dir: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> str:
        """Call ``writer`` on the first free destination path and return that path.

        A ConflictError from the writer (the path appeared after the check)
        moves on to the next candidate; any other error propagates untouched.
        """
        for cand in self._candidates(name, is_dir):
            check(cancel)
            path = self.files.join(dest_dir, cand)
            if await self.files.exists(path):
                continue
            try:
                await writer(path)
            except ConflictError:
                self.logger.debug(f"destination appeared during write, retrying: {path}")
                continue
            if cand != name:
                self.logger.info(f"name conflict: {name!r} written as {cand!r}")
            return path
        raise ConflictLimitError(
            f"No free name for {name!r} after {self.max_attempts} attempts",
            path=self.files.join(dest_dir, name),
        )
