from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from filepilot.config.models import EngineConfig
from filepilot.core.errors import ConflictError, ProviderError, ValidationError
from filepilot.core.logging import get_logger
from filepilot.services.conflicts import ConflictResolver
from filepilot.services.file_clipboard import ClipboardEntry, ClipboardStore, TextClipboard
from filepilot.services.files_base import FilesBackend
from filepilot.services.notifications import NotificationSink
from filepilot.services.search_provider import SearchProvider, StorageSearchProvider
from filepilot.services.search_session import PathCallback, SearchSession
from filepilot.services.transfer_executor import TransferExecutor
from filepilot.services.transfer_tracker import (
    OperationKind,
    OperationStatus,
    TransferOperation,
    TransferOperationTracker,
)
from filepilot.services.validation import validate_name

# (kind, directory) after a paste or delete completed; kind is copy, move or delete
DirectoryListener = Callable[[str, str], None]


class FileOperations:
    """Copy/cut/paste/delete/rename/create for one storage backend.

    Owns the clipboard, the operation tracker and the notification slot; UI
    code holds a reference to this object instead of reaching for globals.
    """

    def __init__(
        self,
        files: FilesBackend,
        *,
        config: Optional[EngineConfig] = None,
        text_clipboard: Optional[TextClipboard] = None,
        notifier: Optional[NotificationSink] = None,
        history_path: Optional[Path] = None,
    ):
        self.config = config or EngineConfig()
        self.files = files
        self.logger = get_logger("filepilot.fileops")
        self.notifier = notifier or NotificationSink(self.config.notification_ms)
        self.clipboard = ClipboardStore(text_clipboard)
        self.tracker = TransferOperationTracker(
            self.notifier,
            history_path=history_path,
            history_enabled=self.config.history_enabled,
        )
        self.resolver = ConflictResolver(files, self.config.max_conflict_attempts)
        self.executor = TransferExecutor(files, self.tracker, self.resolver, self.notifier)
        self._directory_listeners: List[DirectoryListener] = []

    def add_directory_listener(self, listener: DirectoryListener) -> None:
        """Called once per completed paste or delete with the directory whose listing changed."""
        self._directory_listeners.append(listener)

    def _directory_changed(self, kind: OperationKind, directory: str) -> None:
        for listener in list(self._directory_listeners):
            listener(kind.value, directory)

    def make_search_session(
        self,
        provider: Optional[SearchProvider] = None,
        *,
        debounce_ms: Optional[int] = None,
        navigate: Optional[PathCallback] = None,
        open_file: Optional[PathCallback] = None,
    ) -> SearchSession:
        """Search over this backend using the configured debounce and page size."""
        return SearchSession(
            provider or StorageSearchProvider(self.files, self.config.search_page_size),
            debounce_ms=self.config.debounce_ms if debounce_ms is None else debounce_ms,
            navigate=navigate,
            open_file=open_file,
        )

    # ---------- clipboard ----------
    def copy(self, files: Sequence[str], source_dir: str, directories: Iterable[str] = ()) -> ClipboardEntry:
        entry = self.clipboard.set_copy(files, source_dir, directories)
        self.notifier.info("Copy", f"{len(entry.files)} item(s) copied to clipboard")
        return entry

    def cut(self, files: Sequence[str], source_dir: str, directories: Iterable[str] = ()) -> ClipboardEntry:
        entry = self.clipboard.set_cut(files, source_dir, directories)
        self.notifier.warning("Cut", f"{len(entry.files)} item(s) ready to move")
        return entry

    async def paste(self, dest_dir: str) -> Optional[TransferOperation]:
        """Paste the clipboard into ``dest_dir``; None when the clipboard is empty."""
        entry = self.clipboard.current()
        if entry is None or not entry.files:
            self.logger.info("paste: clipboard is empty")
            return None

        for name in entry.files:
            src = self.files.join(entry.source_dir, name)
            if self.files.is_within(dest_dir, src):
                raise ValidationError(f"Cannot paste {name!r} into itself")

        op = await self.executor.run_paste(entry, dest_dir)
        if op.status == OperationStatus.COMPLETED:
            # Only a fully completed cut consumes the clipboard.
            if op.kind == OperationKind.MOVE and self.clipboard.current() == entry:
                self.clipboard.clear()
            self._directory_changed(op.kind, dest_dir)
        return op

    async def delete(self, names: Sequence[str], source_dir: str) -> TransferOperation:
        op = await self.executor.run_delete(list(names), source_dir)
        if op.status == OperationStatus.COMPLETED:
            self._directory_changed(op.kind, source_dir)
        return op

    # ---------- single-item operations ----------
    async def rename(self, directory: str, old_name: str, new_name: str) -> str:
        validate_name(new_name)
        if old_name == new_name:
            return self.files.join(directory, old_name)
        src = self.files.join(directory, old_name)
        dst = self.files.join(directory, new_name)
        try:
            await self.files.rename(src, dst)
        except ConflictError as e:
            raise ProviderError(f"An item named {new_name!r} already exists", path=dst) from e
        self.logger.info(f"renamed {src} -> {dst}")
        return dst

    async def create_file(self, directory: str, name: str) -> str:
        validate_name(name)
        path = self.files.join(directory, name)
        try:
            await self.files.write_empty_file(path)
        except ConflictError as e:
            raise ProviderError("A file with this name already exists", path=path) from e
        return path

    async def create_folder(self, directory: str, name: str) -> str:
        validate_name(name)
        path = self.files.join(directory, name)
        try:
            await self.files.mkdir(path)
        except ConflictError as e:
            raise ProviderError("A folder with this name already exists", path=path) from e
        return path

    async def new_item_name(self, directory: str, default: str = "New File", *, is_dir: bool = False) -> str:
        """First free name: ``default``, then ``default (1)``… with the number before a file extension."""
        validate_name(default)
        return await self.resolver.first_free_name(directory, default, is_dir=is_dir)

    # ---------- progress surface ----------
    def operations(self):
        return self.tracker.operations()

    def cancel(self, op_id: str) -> bool:
        return self.tracker.cancel(op_id)

    def acknowledge(self) -> bool:
        return self.tracker.acknowledge()

