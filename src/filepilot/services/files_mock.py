from __future__ import annotations

import asyncio
import posixpath
import time
from typing import Dict, List, Optional, Tuple

from filepilot.core.cancel import CancelToken, check
from filepilot.core.errors import ConflictError, NotFoundError, ProviderError
from filepilot.services.files_base import DirEntry, FileStat, FilesBackend


def _norm(path: str) -> str:
    return posixpath.normpath("/" + path.lstrip("/"))


class MockFilesBackend(FilesBackend):
    """In-memory filesystem used by the test suite.

    ``fail(op, path)`` makes the next calls of ``op`` on ``path`` raise a
    ProviderError, which is how partial failures are simulated.
    """

    def __init__(self, files: Optional[Dict[str, str]] = None, *, latency: float = 0.0):
        self._files: Dict[str, bytes] = {}
        self._dirs = {"/"}
        self._mt: Dict[str, int] = {}
        self._failures: Dict[Tuple[str, str], str] = {}
        self.latency = latency
        self.calls: List[Tuple[str, str]] = []
        for path, text in (files or {}).items():
            self.add_file(path, text)

    # --- setup helpers ---
    def add_dir(self, path: str) -> None:
        path = _norm(path)
        while path not in self._dirs:
            self._dirs.add(path)
            self._mt[path] = int(time.time())
            path = posixpath.dirname(path)

    def add_file(self, path: str, text: str = "") -> None:
        path = _norm(path)
        self.add_dir(posixpath.dirname(path))
        self._files[path] = text.encode("utf-8")
        self._mt[path] = int(time.time())

    def fail(self, op: str, path: str, message: str = "Permission denied") -> None:
        self._failures[(op, _norm(path))] = message

    def read_text(self, path: str) -> str:
        return self._files[_norm(path)].decode("utf-8")

    def paths(self) -> List[str]:
        return sorted(set(self._files) | (self._dirs - {"/"}))

    # --- internals ---
    async def _enter(self, op: str, path: str) -> str:
        path = _norm(path)
        self.calls.append((op, path))
        if self.latency:
            await asyncio.sleep(self.latency)
        else:
            await asyncio.sleep(0)
        msg = self._failures.get((op, path))
        if msg is not None:
            raise ProviderError(f"{msg}: {path}", path=path)
        return path

    def _exists(self, path: str) -> bool:
        return path in self._files or path in self._dirs

    def _require_parent(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if parent not in self._dirs:
            raise NotFoundError(f"No such directory: {parent}", path=parent)

    def _children(self, path: str) -> List[str]:
        prefix = path.rstrip("/") + "/"
        out = []
        for p in list(self._files) + list(self._dirs):
            if p != path and p.startswith(prefix) and "/" not in p[len(prefix):]:
                out.append(p)
        return out

    # --- FilesBackend ---
    async def read_dir(self, path: str, cancel: Optional[CancelToken] = None) -> List[DirEntry]:
        check(cancel)
        path = await self._enter("read_dir", path)
        if path not in self._dirs:
            raise NotFoundError(f"No such directory: {path}", path=path)
        entries = [DirEntry(name=posixpath.basename(p), is_dir=p in self._dirs) for p in self._children(path)]
        entries.sort(key=lambda e: (not e.is_dir, e.name.lower()))
        return entries

    async def stat(self, path: str) -> FileStat:
        path = await self._enter("stat", path)
        if path in self._dirs:
            return FileStat(size=0, mtime=self._mt.get(path, 0), ctime=self._mt.get(path, 0), is_dir=True)
        if path in self._files:
            mt = self._mt.get(path, 0)
            return FileStat(size=len(self._files[path]), mtime=mt, ctime=mt, is_dir=False)
        raise NotFoundError(f"No such file or directory: {path}", path=path)

    async def copy_file(self, src: str, dst: str, cancel: Optional[CancelToken] = None) -> None:
        check(cancel)
        src = _norm(src)
        dst = await self._enter("copy_file", dst)
        if src not in self._files:
            raise NotFoundError(f"No such file: {src}", path=src)
        if self._exists(dst):
            raise ConflictError(dst)
        self._require_parent(dst)
        self._files[dst] = self._files[src]
        self._mt[dst] = int(time.time())

    async def remove(self, path: str, recursive: bool = False, cancel: Optional[CancelToken] = None) -> None:
        check(cancel)
        path = await self._enter("remove", path)
        if path in self._files:
            del self._files[path]
            return
        if path not in self._dirs:
            raise NotFoundError(f"No such file or directory: {path}", path=path)
        children = self._children(path)
        if children and not recursive:
            raise ProviderError(f"Directory not empty: {path}", path=path)
        prefix = path.rstrip("/") + "/"
        for p in [p for p in self._files if p.startswith(prefix)]:
            del self._files[p]
        self._dirs = {d for d in self._dirs if not d.startswith(prefix)}
        self._dirs.discard(path)

    async def mkdir(self, path: str) -> None:
        path = await self._enter("mkdir", path)
        if self._exists(path):
            raise ConflictError(path)
        self._require_parent(path)
        self._dirs.add(path)
        self._mt[path] = int(time.time())

    async def write_empty_file(self, path: str) -> None:
        path = await self._enter("write_empty_file", path)
        if self._exists(path):
            raise ConflictError(path)
        self._require_parent(path)
        self._files[path] = b""
        self._mt[path] = int(time.time())

    async def rename(self, src: str, dst: str) -> None:
        src = _norm(src)
        dst = await self._enter("rename", dst)
        if not self._exists(src):
            raise NotFoundError(f"No such file or directory: {src}", path=src)
        if self._exists(dst):
            raise ConflictError(dst)
        self._require_parent(dst)
        if src in self._files:
            self._files[dst] = self._files.pop(src)
            return
        prefix = src.rstrip("/") + "/"
        for p in [p for p in self._files if p.startswith(prefix)]:
            self._files[dst + p[len(src):]] = self._files.pop(p)
        moved = {d for d in self._dirs if d == src or d.startswith(prefix)}
        self._dirs -= moved
        self._dirs |= {dst + d[len(src):] for d in moved}

    async def exists(self, path: str) -> bool:
        path = await self._enter("exists", path)
        return self._exists(path)
