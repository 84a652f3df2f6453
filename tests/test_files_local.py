from pathlib import Path

import pytest

from filepilot.core.cancel import CancelToken
from filepilot.core.errors import ConflictError, NotFoundError, OperationCancelledError, ProviderError
from filepilot.services.file_operations import FileOperations
from filepilot.services.files_local import LocalFilesBackend
from filepilot.services.transfer_tracker import OperationStatus


@pytest.fixture
def disk(tmp_path: Path) -> Path:
    (tmp_path / "src" / "dir" / "sub").mkdir(parents=True)
    (tmp_path / "src" / "a.txt").write_text("alpha", encoding="utf-8")
    (tmp_path / "src" / "dir" / "inner.txt").write_text("inner", encoding="utf-8")
    (tmp_path / "src" / "dir" / "sub" / "deep.txt").write_text("deep", encoding="utf-8")
    (tmp_path / "dst").mkdir()
    return tmp_path


@pytest.mark.asyncio
async def test_read_dir_and_stat(disk) -> None:
    backend = LocalFilesBackend()

    entries = await backend.read_dir(str(disk / "src"))
    assert sorted((e.name, e.is_dir) for e in entries) == [("a.txt", False), ("dir", True)]

    st = await backend.stat(str(disk / "src" / "a.txt"))
    assert st.size == 5
    assert st.is_dir is False
    assert (await backend.stat(str(disk / "src" / "dir"))).is_dir

    with pytest.raises(NotFoundError):
        await backend.stat(str(disk / "missing"))
    with pytest.raises(NotFoundError):
        await backend.read_dir(str(disk / "missing"))


@pytest.mark.asyncio
async def test_copy_file_never_overwrites(disk) -> None:
    backend = LocalFilesBackend()
    src = str(disk / "src" / "a.txt")
    dst = disk / "dst" / "a.txt"

    await backend.copy_file(src, str(dst))
    assert dst.read_text(encoding="utf-8") == "alpha"

    dst.write_text("changed", encoding="utf-8")
    with pytest.raises(ConflictError):
        await backend.copy_file(src, str(dst))
    assert dst.read_text(encoding="utf-8") == "changed"

    with pytest.raises(NotFoundError):
        await backend.copy_file(str(disk / "src" / "nope.txt"), str(disk / "dst" / "nope.txt"))


@pytest.mark.asyncio
async def test_cancelled_copy_leaves_nothing_behind(disk) -> None:
    backend = LocalFilesBackend()
    token = CancelToken()
    token.cancel()

    with pytest.raises(OperationCancelledError):
        await backend.copy_file(str(disk / "src" / "a.txt"), str(disk / "dst" / "a.txt"), cancel=token)
    assert not (disk / "dst" / "a.txt").exists()


@pytest.mark.asyncio
async def test_remove_mkdir_rename(disk) -> None:
    backend = LocalFilesBackend()
    folder = str(disk / "src" / "dir")

    with pytest.raises(ProviderError):
        await backend.remove(folder)
    await backend.remove(folder, recursive=True)
    assert not await backend.exists(folder)

    with pytest.raises(ConflictError):
        await backend.mkdir(str(disk / "dst"))

    await backend.write_empty_file(str(disk / "dst" / "empty"))
    with pytest.raises(ConflictError):
        await backend.write_empty_file(str(disk / "dst" / "empty"))

    with pytest.raises(ConflictError):
        await backend.rename(str(disk / "src" / "a.txt"), str(disk / "dst" / "empty"))
    await backend.rename(str(disk / "src" / "a.txt"), str(disk / "dst" / "b.txt"))
    assert (disk / "dst" / "b.txt").read_text(encoding="utf-8") == "alpha"


def test_is_within(disk) -> None:
    backend = LocalFilesBackend()
    assert backend.is_within(str(disk / "src" / "dir" / "sub"), str(disk / "src" / "dir"))
    assert backend.is_within(str(disk / "src"), str(disk / "src"))
    assert not backend.is_within(str(disk / "src-other"), str(disk / "src"))


@pytest.mark.asyncio
async def test_move_folder_on_disk(disk, engine_config) -> None:
    ops = FileOperations(LocalFilesBackend(), config=engine_config)
    (disk / "dst" / "dir").mkdir()

    ops.cut(["dir", "a.txt"], str(disk / "src"), directories=["dir"])
    op = await ops.paste(str(disk / "dst"))

    assert op.status == OperationStatus.COMPLETED
    assert (disk / "dst" / "dir (1)" / "sub" / "deep.txt").read_text(encoding="utf-8") == "deep"
    assert (disk / "dst" / "a.txt").exists()
    assert list((disk / "src").iterdir()) == []


class _TripAfter(CancelToken):
    """Cancels itself on the n-th check."""

    def __init__(self, n: int) -> None:
        super().__init__()
        self.remaining = n

    def raise_if_cancelled(self) -> None:
        self.remaining -= 1
        if self.remaining <= 0:
            self.cancel()
        super().raise_if_cancelled()


@pytest.mark.asyncio
async def test_cancelled_recursive_remove_can_be_retried(disk) -> None:
    backend = LocalFilesBackend()
    folder = str(disk / "src" / "dir")

    with pytest.raises(OperationCancelledError):
        await backend.remove(folder, recursive=True, cancel=_TripAfter(3))
    assert (disk / "src" / "dir").exists()

    await backend.remove(folder, recursive=True)
    assert not (disk / "src" / "dir").exists()


@pytest.mark.asyncio
async def test_cut_into_source_directory_with_trailing_slash(disk, engine_config) -> None:
    ops = FileOperations(LocalFilesBackend(), config=engine_config)

    ops.cut(["a.txt"], str(disk / "src") + "/")
    op = await ops.paste(str(disk / "src"))

    assert op.status == OperationStatus.COMPLETED
    assert sorted(p.name for p in (disk / "src").iterdir()) == ["a.txt", "dir"]
