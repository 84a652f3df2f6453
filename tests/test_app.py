import sys
from pathlib import Path

import pytest

from filepilot.app import build_parser, main


@pytest.fixture(autouse=True)
def _keep_excepthook(monkeypatch) -> None:
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "invoice-1.pdf").write_text("1", encoding="utf-8")
    (tmp_path / "src" / "notes.txt").write_text("n", encoding="utf-8")
    (tmp_path / "dst").mkdir()
    return tmp_path


def test_copy(tree: Path, capsys) -> None:
    code = main(["copy", str(tree / "src"), "invoice-1.pdf", "--to", str(tree / "dst")])

    assert code == 0
    assert (tree / "dst" / "invoice-1.pdf").exists()
    assert (tree / "src" / "invoice-1.pdf").exists()
    assert "Successfully copied 1 item" in capsys.readouterr().out


def test_move(tree: Path) -> None:
    assert main(["move", str(tree / "src"), "notes.txt", "--to", str(tree / "dst")]) == 0
    assert (tree / "dst" / "notes.txt").exists()
    assert not (tree / "src" / "notes.txt").exists()


def test_delete_failure_exit_code(tree: Path, capsys) -> None:
    code = main(["delete", str(tree / "src"), "missing.txt"])

    assert code == 1
    assert "Delete Failed" in capsys.readouterr().out


def test_search(tree: Path, capsys) -> None:
    assert main(["search", str(tree), "INVOICE"]) == 0

    out = capsys.readouterr().out
    assert str(tree / "src" / "invoice-1.pdf") in out
    assert "1 match(es)" in out


def test_invalid_paste_target(tree: Path, capsys) -> None:
    code = main(["copy", str(tree), "src", "--to", str(tree / "src")])

    assert code == 2
    assert "error:" in capsys.readouterr().err


def test_creates_app_data_dir(tree: Path, _isolated_home: Path) -> None:
    main(["search", str(tree), "notes"])
    assert (_isolated_home / ".filepilot").is_dir()


def test_ssh_option_is_parsed() -> None:
    args = build_parser().parse_args(["--ssh", "alice@host:2222", "delete", "/tmp", "x"])
    assert args.ssh == "alice@host:2222"
    assert args.names == ["x"]
