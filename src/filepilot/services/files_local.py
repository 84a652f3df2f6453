from __future__ import annotations

import asyncio
import errno
import os
import shutil
from typing import List, Optional

from filepilot.core.cancel import CancelToken, check
from filepilot.core.errors import ConflictError, NotFoundError, ProviderError
from filepilot.core.logging import get_logger
from filepilot.services.files_base import DirEntry, FileStat, FilesBackend

_CHUNK = 1024 * 1024
_log = get_logger("filepilot.files.local")


def _translate(exc: OSError, path: str) -> Exception:
    if isinstance(exc, FileNotFoundError):
        return NotFoundError(f"No such file or directory: {path}", path=path)
    if isinstance(exc, FileExistsError) or exc.errno == errno.EEXIST:
        return ConflictError(path)
    return ProviderError(f"{exc.strerror or exc}: {path}", path=path)


class LocalFilesBackend(FilesBackend):
    """Local disk backend; blocking calls run on worker threads."""

    def _read_dir(self, path: str) -> List[DirEntry]:
        entries = []
        with os.scandir(path) as it:
            for e in it:
                entries.append(DirEntry(name=e.name, is_dir=e.is_dir(follow_symlinks=False)))
        return entries

    async def read_dir(self, path: str, cancel: Optional[CancelToken] = None) -> List[DirEntry]:
        check(cancel)
        try:
            return await asyncio.to_thread(self._read_dir, path)
        except OSError as e:
            raise _translate(e, path) from e

    async def stat(self, path: str) -> FileStat:
        try:
            st = await asyncio.to_thread(os.lstat, path)
        except OSError as e:
            raise _translate(e, path) from e
        return FileStat(
            size=int(st.st_size),
            mtime=int(st.st_mtime),
            ctime=int(getattr(st, "st_birthtime", st.st_ctime)),
            is_dir=os.path.isdir(path) and not os.path.islink(path),
        )

    def _copy_file(self, src: str, dst: str, cancel: Optional[CancelToken]) -> None:
        # "xb" refuses to replace an existing destination.
        with open(src, "rb") as fin, open(dst, "xb") as fout:
            try:
                while True:
                    check(cancel)
                    chunk = fin.read(_CHUNK)
                    if not chunk:
                        break
                    fout.write(chunk)
            except BaseException:
                fout.close()
                os.unlink(dst)
                raise
        shutil.copystat(src, dst)

    async def copy_file(self, src: str, dst: str, cancel: Optional[CancelToken] = None) -> None:
        check(cancel)
        try:
            await asyncio.to_thread(self._copy_file, src, dst, cancel)
        except FileNotFoundError as e:
            # Missing source vs. missing destination directory
            raise _translate(e, src if not os.path.exists(src) else dst) from e
        except OSError as e:
            raise _translate(e, dst) from e

    def _remove(self, path: str, recursive: bool, cancel: Optional[CancelToken]) -> None:
        if os.path.isdir(path) and not os.path.islink(path):
            if not recursive:
                os.rmdir(path)
                return
            with os.scandir(path) as it:
                for entry in it:
                    check(cancel)
                    self._remove(entry.path, True, cancel)
            os.rmdir(path)
        else:
            os.unlink(path)

    async def remove(self, path: str, recursive: bool = False, cancel: Optional[CancelToken] = None) -> None:
        check(cancel)
        try:
            await asyncio.to_thread(self._remove, path, recursive, cancel)
        except OSError as e:
            raise _translate(e, path) from e

    async def mkdir(self, path: str) -> None:
        try:
            await asyncio.to_thread(os.mkdir, path)
        except OSError as e:
            raise _translate(e, path) from e

    def _touch_new(self, path: str) -> None:
        with open(path, "xb"):
            pass

    async def write_empty_file(self, path: str) -> None:
        try:
            await asyncio.to_thread(self._touch_new, path)
        except OSError as e:
            raise _translate(e, path) from e

    async def rename(self, src: str, dst: str) -> None:
        if await self.exists(dst):
            raise ConflictError(dst)
        try:
            await asyncio.to_thread(os.rename, src, dst)
        except OSError as e:
            raise _translate(e, src) from e

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.lexists, path)

    def join(self, base: str, name: str) -> str:
        return os.path.join(base, name)

    def basename(self, path: str) -> str:
        return os.path.basename(path.rstrip(os.sep)) or path

    def dirname(self, path: str) -> str:
        return os.path.dirname(path.rstrip(os.sep)) or os.sep

    def same_path(self, a: str, b: str) -> bool:
        return os.path.realpath(a) == os.path.realpath(b)

    def is_within(self, path: str, parent: str) -> bool:
        p = os.path.realpath(path)
        root = os.path.realpath(parent)
        try:
            return os.path.commonpath([p, root]) == root
        except ValueError:
            # different drives on Windows
            return False
