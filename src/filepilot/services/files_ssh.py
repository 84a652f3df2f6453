from __future__ import annotations

import asyncio
import errno
import shlex
import stat as pystat
import threading
from typing import Callable, List, Optional, TypeVar

import paramiko

from filepilot.core.cancel import CancelToken, check
from filepilot.core.errors import ConflictError, NotFoundError, ProviderError
from filepilot.services.files_base import DirEntry, FileStat, FilesBackend
from filepilot.ssh.client import SSHClientWrapper

T = TypeVar("T")

_CHUNK = 32 * 1024


class SSHFilesBackend(FilesBackend):
    """SFTP backend. One paramiko channel is shared, so calls are serialised."""

    def __init__(self, ssh: SSHClientWrapper):
        if not ssh.sftp:
            raise RuntimeError("SFTP not available")
        self.ssh = ssh
        self._lock = threading.Lock()

    async def _call(self, path: str, fn: Callable[..., T], *args) -> T:
        def locked() -> T:
            with self._lock:
                return fn(*args)

        try:
            return await asyncio.to_thread(locked)
        except (ConflictError, ProviderError):
            raise
        except IOError as e:
            if e.errno == errno.ENOENT:
                raise NotFoundError(f"No such file or directory: {path}", path=path) from e
            raise ProviderError(f"{e.strerror or e}: {path}", path=path) from e
        except paramiko.SSHException as e:
            raise ProviderError(f"SSH error: {e}", path=path) from e

    def _exists(self, path: str) -> bool:
        try:
            self.ssh.sftp.lstat(path)
        except IOError as e:
            if e.errno == errno.ENOENT:
                return False
            raise
        return True

    def _read_dir(self, path: str) -> List[DirEntry]:
        entries: List[DirEntry] = []
        for attr in self.ssh.sftp.listdir_attr(path):
            mode = getattr(attr, "st_mode", 0) or 0
            entries.append(DirEntry(name=attr.filename, is_dir=pystat.S_ISDIR(mode)))
        entries.sort(key=lambda e: (not e.is_dir, e.name.lower()))
        return entries

    async def read_dir(self, path: str, cancel: Optional[CancelToken] = None) -> List[DirEntry]:
        check(cancel)
        return await self._call(path, self._read_dir, path)

    def _stat(self, path: str) -> FileStat:
        st = self.ssh.sftp.stat(path)
        mtime = int(getattr(st, "st_mtime", 0) or 0)
        return FileStat(
            size=int(getattr(st, "st_size", 0) or 0),
            mtime=mtime,
            # SFTP v3 has no creation time
            ctime=mtime,
            is_dir=pystat.S_ISDIR(getattr(st, "st_mode", 0) or 0),
        )

    async def stat(self, path: str) -> FileStat:
        return await self._call(path, self._stat, path)

    def _copy_file(self, src: str, dst: str, cancel: Optional[CancelToken]) -> None:
        if self._exists(dst):
            raise ConflictError(dst)
        sftp = self.ssh.sftp
        with sftp.open(src, "rb") as fin, sftp.open(dst, "wx") as fout:
            fin.prefetch()
            try:
                while True:
                    check(cancel)
                    chunk = fin.read(_CHUNK)
                    if not chunk:
                        break
                    fout.write(chunk)
            except BaseException:
                fout.close()
                sftp.remove(dst)
                raise

    async def copy_file(self, src: str, dst: str, cancel: Optional[CancelToken] = None) -> None:
        check(cancel)
        await self._call(dst, self._copy_file, src, dst, cancel)

    def _remove(self, path: str, recursive: bool) -> None:
        if not self._exists(path):
            raise NotFoundError(f"No such file or directory: {path}", path=path)
        st = self.ssh.sftp.lstat(path)
        if not pystat.S_ISDIR(st.st_mode or 0):
            self.ssh.sftp.remove(path)
            return
        if not recursive:
            self.ssh.sftp.rmdir(path)
            return
        # Use shell rm to support recursive deletes reliably.
        code, _, err = self.ssh.run(f"rm -rf -- {shlex.quote(path)}")
        if code != 0:
            raise ProviderError(err.strip() or f"rm failed (exit={code})", path=path)

    async def remove(self, path: str, recursive: bool = False, cancel: Optional[CancelToken] = None) -> None:
        check(cancel)
        await self._call(path, self._remove, path, recursive)

    def _mkdir(self, path: str) -> None:
        if self._exists(path):
            raise ConflictError(path)
        self.ssh.sftp.mkdir(path)

    async def mkdir(self, path: str) -> None:
        await self._call(path, self._mkdir, path)

    def _touch_new(self, path: str) -> None:
        if self._exists(path):
            raise ConflictError(path)
        self.ssh.sftp.open(path, "wx").close()

    async def write_empty_file(self, path: str) -> None:
        await self._call(path, self._touch_new, path)

    def _rename(self, src: str, dst: str) -> None:
        if self._exists(dst):
            raise ConflictError(dst)
        self.ssh.sftp.rename(src, dst)

    async def rename(self, src: str, dst: str) -> None:
        await self._call(src, self._rename, src, dst)

    async def exists(self, path: str) -> bool:
        return await self._call(path, self._exists, path)
