from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make src/ importable when pytest runs from a plain checkout (no `pip install -e .`).
_SRC = Path(__file__).resolve().parents[1] / "src"
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

from filepilot.config.models import EngineConfig  # noqa: E402
from filepilot.services.file_clipboard import MemoryTextClipboard  # noqa: E402
from filepilot.services.file_operations import FileOperations  # noqa: E402
from filepilot.services.files_mock import MockFilesBackend  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_home(monkeypatch, tmp_path: Path) -> Path:
    # config.json, history.json and app.log all live under ~/.filepilot
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("FILEPILOT_HOME", raising=False)
    return home


@pytest.fixture
def files() -> MockFilesBackend:
    fs = MockFilesBackend(
        {
            "/src/a.txt": "alpha",
            "/src/b.txt": "bravo",
            "/src/c.txt": "charlie",
            "/src/dir/inner.txt": "inner",
            "/src/dir/sub/deep.txt": "deep",
        }
    )
    fs.add_dir("/dst")
    return fs


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(notification_ms=0, history_enabled=False)


@pytest.fixture
def text_clipboard() -> MemoryTextClipboard:
    return MemoryTextClipboard()


@pytest.fixture
def ops(files, engine_config, text_clipboard) -> FileOperations:
    return FileOperations(files, config=engine_config, text_clipboard=text_clipboard)


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtCore import QCoreApplication

    return QCoreApplication.instance() or QCoreApplication([])
