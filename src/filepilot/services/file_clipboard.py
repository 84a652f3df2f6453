from __future__ import annotations

import json
import posixpath
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Optional, Protocol, Sequence, Tuple

from filepilot.core.logging import get_logger

_log = get_logger("filepilot.clipboard")


class ClipboardMode(str, Enum):
    COPY = "copy"
    CUT = "cut"


@dataclass(frozen=True)
class ClipboardEntry:
    mode: ClipboardMode
    files: Tuple[str, ...]
    source_dir: str
    directories: FrozenSet[str] = field(default_factory=frozenset)

    def is_dir(self, name: str) -> bool:
        return name in self.directories

    def to_json(self) -> str:
        base = self.source_dir.rstrip("/")
        return json.dumps(
            {
                "action": self.mode.value,
                "files": [
                    {"name": name, "path": f"{base}/{name}", "isDirectory": name in self.directories}
                    for name in self.files
                ],
                "sourceDir": self.source_dir,
            }
        )

    @classmethod
    def from_json(cls, text: str) -> Optional["ClipboardEntry"]:
        """Rebuild an entry from the text clipboard; None if it is not one of ours."""
        try:
            data = json.loads(text)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        try:
            mode = ClipboardMode(data.get("action"))
        except ValueError:
            return None
        items = data.get("files")
        if not isinstance(items, list) or not items:
            return None
        names, dirs = [], set()
        for item in items:
            if not isinstance(item, dict) or not isinstance(item.get("name"), str):
                return None
            names.append(item["name"])
            if item.get("isDirectory"):
                dirs.add(item["name"])
        source_dir = data.get("sourceDir")
        if not isinstance(source_dir, str):
            first = items[0].get("path")
            if not isinstance(first, str):
                return None
            source_dir = posixpath.dirname(first.replace("\\", "/")) or "/"
        return cls(mode=mode, files=tuple(names), source_dir=source_dir, directories=frozenset(dirs))


class TextClipboard(Protocol):
    def write(self, text: str) -> None: ...

    def read(self) -> str: ...


class MemoryTextClipboard:
    def __init__(self, text: str = ""):
        self.text = text

    def write(self, text: str) -> None:
        self.text = text

    def read(self) -> str:
        return self.text


class QtTextClipboard:
    """System clipboard through Qt. Requires a running QGuiApplication."""

    def _clipboard(self):
        from PySide6.QtGui import QGuiApplication

        cb = QGuiApplication.clipboard()
        if cb is None:
            raise RuntimeError("no QGuiApplication instance")
        return cb

    def write(self, text: str) -> None:
        self._clipboard().setText(text)

    def read(self) -> str:
        return self._clipboard().text() or ""


class ClipboardStore:
    """Holds at most one pending copy/cut request.

    Owned by a single FileOperations instance. Every change is mirrored to a
    TextClipboard so a paste can be reconstructed when the in-memory entry
    is gone (e.g. a new process).
    """

    def __init__(self, text_clipboard: Optional[TextClipboard] = None):
        self._text = text_clipboard
        self._entry: Optional[ClipboardEntry] = None
        self._lock = threading.RLock()
        self._listeners: List[Callable[[Optional[ClipboardEntry]], None]] = []

    def add_listener(self, listener: Callable[[Optional[ClipboardEntry]], None]) -> None:
        self._listeners.append(listener)

    def set_copy(self, files: Sequence[str], source_dir: str, directories: Iterable[str] = ()) -> ClipboardEntry:
        return self._set(ClipboardMode.COPY, files, source_dir, directories)

    def set_cut(self, files: Sequence[str], source_dir: str, directories: Iterable[str] = ()) -> ClipboardEntry:
        return self._set(ClipboardMode.CUT, files, source_dir, directories)

    def _set(self, mode: ClipboardMode, files: Sequence[str], source_dir: str, directories: Iterable[str]) -> ClipboardEntry:
        entry = ClipboardEntry(
            mode=mode,
            files=tuple(files),
            source_dir=source_dir,
            directories=frozenset(directories),
        )
        with self._lock:
            self._entry = entry
            self._mirror(entry.to_json())
        self._emit(entry)
        _log.debug(f"clipboard {mode.value}: {len(entry.files)} item(s) from {source_dir}")
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entry = None
            self._mirror("")
        self._emit(None)

    def current(self) -> Optional[ClipboardEntry]:
        with self._lock:
            if self._entry is not None:
                return self._entry
            if self._text is None:
                return None
            try:
                text = self._text.read()
            except RuntimeError as e:
                _log.warning(f"text clipboard unavailable: {e}")
                return None
            if not text:
                return None
            entry = ClipboardEntry.from_json(text)
            if entry is not None:
                _log.info(f"clipboard restored from system clipboard ({len(entry.files)} item(s))")
                self._entry = entry
            return entry

    def _emit(self, entry: Optional[ClipboardEntry]) -> None:
        for listener in list(self._listeners):
            listener(entry)

    def _mirror(self, text: str) -> None:
        if self._text is None:
            return
        try:
            self._text.write(text)
        except RuntimeError as e:
            # The in-memory entry stays authoritative.
            _log.warning(f"could not mirror clipboard to system clipboard: {e}")
