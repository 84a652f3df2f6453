from __future__ import annotations

from typing import List, Optional

from PySide6.QtCore import QObject, Signal, Slot

from filepilot.services.file_clipboard import ClipboardEntry
from filepilot.services.file_operations import FileOperations
from filepilot.services.notifications import Notification
from filepilot.services.search_session import SearchSession, SearchSessionState
from filepilot.services.transfer_tracker import TransferOperation


class EngineBridge(QObject):
    """Re-emits engine state as Qt signals for the widgets.

    Widgets connect to these instead of polling the engine; the progress
    dialog listens to ``operations_changed``, the toast to ``notification``.
    """

    operations_changed = Signal(object)  # List[TransferOperation]
    notification = Signal(object)  # Notification | None
    search_state_changed = Signal(object)  # SearchSessionState
    clipboard_changed = Signal(object)  # ClipboardEntry | None
    directory_changed = Signal(str, str)  # kind, directory to re-list

    def __init__(self, file_ops: FileOperations, search: Optional[SearchSession] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.file_ops = file_ops
        self.search = search if search is not None else file_ops.make_search_session()
        self.progress_visible = False

        file_ops.tracker.add_listener(self._on_operations)
        file_ops.notifier.add_listener(self._on_notification)
        file_ops.clipboard.add_listener(self._on_clipboard)
        file_ops.add_directory_listener(self._on_directory_changed)
        self.search.add_listener(self._on_search_state)

    def _on_operations(self, ops: List[TransferOperation]) -> None:
        self.progress_visible = bool(ops)
        self.operations_changed.emit(ops)

    def _on_notification(self, n: Optional[Notification]) -> None:
        self.notification.emit(n)

    def _on_clipboard(self, entry: Optional[ClipboardEntry]) -> None:
        self.clipboard_changed.emit(entry)

    def _on_search_state(self, state: SearchSessionState) -> None:
        self.search_state_changed.emit(state)

    def _on_directory_changed(self, kind: str, directory: str) -> None:
        self.directory_changed.emit(kind, directory)

    # --- slots for menu actions that do not need the event loop ---
    @Slot(list, str)
    def copy(self, names: list, source_dir: str) -> None:
        self.file_ops.copy(names, source_dir)

    @Slot(list, str)
    def cut(self, names: list, source_dir: str) -> None:
        self.file_ops.cut(names, source_dir)

    @Slot()
    def refresh_clipboard(self) -> None:
        self.clipboard_changed.emit(self.file_ops.clipboard.current())

    @Slot(str)
    def cancel_operation(self, op_id: str) -> None:
        self.file_ops.cancel(op_id)

    @Slot()
    def close_progress(self) -> None:
        """Progress dialog closed by the user; hides only when nothing is running."""
        self.file_ops.acknowledge()
