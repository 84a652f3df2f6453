from __future__ import annotations

import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from filepilot.core.cancel import CancelToken


@dataclass
class DirEntry:
    name: str
    is_dir: bool


@dataclass
class FileStat:
    size: int = 0
    mtime: int = 0  # unix epoch seconds
    ctime: int = 0
    is_dir: bool = False


class FilesBackend(ABC):
    """Asynchronous storage provider.

    Implementations raise ``NotFoundError`` for missing paths, ``ConflictError``
    when a write would replace an existing entry and ``ProviderError`` for any
    other failure.
    """

    @abstractmethod
    async def read_dir(self, path: str, cancel: Optional[CancelToken] = None) -> List[DirEntry]:
        raise NotImplementedError

    @abstractmethod
    async def stat(self, path: str) -> FileStat:
        raise NotImplementedError

    @abstractmethod
    async def copy_file(self, src: str, dst: str, cancel: Optional[CancelToken] = None) -> None:
        """Copy a single file; never overwrites."""
        raise NotImplementedError

    @abstractmethod
    async def remove(self, path: str, recursive: bool = False, cancel: Optional[CancelToken] = None) -> None:
        raise NotImplementedError

    @abstractmethod
    async def mkdir(self, path: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def write_empty_file(self, path: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def rename(self, src: str, dst: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def exists(self, path: str) -> bool:
        raise NotImplementedError

    # --- path helpers (POSIX by default; local backend overrides) ---
    def join(self, base: str, name: str) -> str:
        return posixpath.join(base, name)

    def basename(self, path: str) -> str:
        return posixpath.basename(path.rstrip("/"))

    def dirname(self, path: str) -> str:
        return posixpath.dirname(path.rstrip("/")) or "/"

    def same_path(self, a: str, b: str) -> bool:
        return posixpath.normpath(a) == posixpath.normpath(b)

    def is_within(self, path: str, parent: str) -> bool:
        """True if ``path`` equals ``parent`` or lives below it."""
        p = posixpath.normpath(path)
        root = posixpath.normpath(parent)
        return p == root or p.startswith(root.rstrip("/") + "/")
