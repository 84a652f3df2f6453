import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from filepilot.core.debug_support import log_exception_with_id, new_error_id
from filepilot.core.logging_setup import install_excepthook, setup_logging


@pytest.fixture
def clean_logger():
    log = logging.getLogger("filepilot")
    saved, level = log.handlers[:], log.level
    log.handlers = []
    yield log
    for h in log.handlers:
        h.close()
    log.handlers = saved
    log.setLevel(level)


def _flush(log: logging.Logger) -> None:
    for h in log.handlers:
        h.flush()


def test_rotating_file_handler_is_installed_once(clean_logger, tmp_path: Path) -> None:
    path = tmp_path / "logs" / "app.log"

    assert setup_logging(path=path) == path
    assert setup_logging(logging.DEBUG, path=tmp_path / "other.log") == path

    handlers = [h for h in clean_logger.handlers if isinstance(h, RotatingFileHandler)]
    assert len(handlers) == 1
    assert handlers[0].level == logging.DEBUG
    assert logging.getLogger("paramiko").level == logging.WARNING

    logging.getLogger("filepilot.transfers").info("operation 1234abcd completed")
    _flush(clean_logger)
    assert "filepilot.transfers | operation 1234abcd completed" in path.read_text(encoding="utf-8")


def test_error_id_is_logged_with_traceback(clean_logger, tmp_path: Path) -> None:
    path = tmp_path / "app.log"
    setup_logging(path=path)

    try:
        raise RuntimeError("disk vanished")
    except RuntimeError as e:
        err_id = log_exception_with_id("xfer", e, context="operation 1234abcd at 'a.txt'")

    _flush(clean_logger)
    text = path.read_text(encoding="utf-8")
    assert str(err_id).startswith("XFER-")
    assert f"Error-ID={err_id} (operation 1234abcd at 'a.txt')" in text
    assert "RuntimeError: disk vanished" in text


def test_error_ids_are_short_and_unique() -> None:
    ids = {str(new_error_id("")) for _ in range(50)}
    assert len(ids) == 50
    assert all(i.startswith("GEN-") and len(i) == 10 for i in ids)


def test_excepthook_logs_uncaught_exceptions(clean_logger, monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(sys, "__excepthook__", lambda *a: None)
    path = tmp_path / "app.log"
    setup_logging(path=path)
    install_excepthook()

    try:
        raise ValueError("unhandled")
    except ValueError:
        sys.excepthook(*sys.exc_info())

    _flush(clean_logger)
    assert "CRITICAL | filepilot | Uncaught exception" in path.read_text(encoding="utf-8")
