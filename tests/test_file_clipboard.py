import json

from filepilot.services.file_clipboard import (
    ClipboardEntry,
    ClipboardMode,
    ClipboardStore,
    MemoryTextClipboard,
)


class BrokenTextClipboard:
    def write(self, text: str) -> None:
        raise RuntimeError("no display")

    def read(self) -> str:
        raise RuntimeError("no display")


def test_current_is_always_the_latest_entry() -> None:
    store = ClipboardStore()
    assert store.current() is None

    store.set_copy(["a.txt"], "/src")
    store.set_cut(["b.txt", "c.txt"], "/other")
    last = store.set_copy(["d"], "/x", directories=["d"])

    entry = store.current()
    assert entry == last
    assert entry.mode == ClipboardMode.COPY
    assert entry.files == ("d",)
    assert entry.is_dir("d")

    store.clear()
    assert store.current() is None


def test_entry_is_mirrored_to_text_clipboard() -> None:
    text = MemoryTextClipboard()
    store = ClipboardStore(text)
    store.set_cut(["a.txt", "docs"], "/home/u", directories=["docs"])

    data = json.loads(text.read())
    assert data["action"] == "cut"
    assert data["sourceDir"] == "/home/u"
    assert data["files"] == [
        {"name": "a.txt", "path": "/home/u/a.txt", "isDirectory": False},
        {"name": "docs", "path": "/home/u/docs", "isDirectory": True},
    ]

    store.clear()
    assert text.read() == ""


def test_current_falls_back_to_text_clipboard() -> None:
    text = MemoryTextClipboard()
    first = ClipboardStore(text).set_copy(["a.txt", "docs"], "/src", directories=["docs"])

    # A second store (e.g. another window) sees the same payload.
    other = ClipboardStore(text)
    assert other.current() == first


def test_text_without_source_dir_uses_parent_of_first_path() -> None:
    payload = json.dumps({"action": "copy", "files": [{"name": "a.txt", "path": "/data/in/a.txt"}]})
    entry = ClipboardEntry.from_json(payload)
    assert entry is not None
    assert entry.source_dir == "/data/in"
    assert entry.directories == frozenset()


def test_foreign_text_is_not_an_entry() -> None:
    for text in ("", "hello", "[1, 2]", '{"action": "paste", "files": []}', '{"action": "copy", "files": []}'):
        assert ClipboardStore(MemoryTextClipboard(text)).current() is None


def test_broken_text_clipboard_does_not_break_the_store() -> None:
    store = ClipboardStore(BrokenTextClipboard())
    entry = store.set_copy(["a.txt"], "/src")
    assert store.current() == entry

    store.clear()
    assert store.current() is None


def test_listeners_see_every_change() -> None:
    seen = []
    store = ClipboardStore()
    store.add_listener(seen.append)

    entry = store.set_cut(["a.txt"], "/src")
    store.clear()

    assert seen == [entry, None]
