from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from filepilot.core.logging import log_path

_FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_MAX_BYTES = 2 * 1024 * 1024
_BACKUPS = 3


def setup_logging(
    level: int = logging.INFO,
    *,
    console: bool = False,
    path: Optional[Path] = None,
) -> Optional[Path]:
    """Attach a rotating file handler (and optionally stderr) to the ``filepilot`` logger.

    Returns the log file, or None when it could not be opened; a missing log
    file never stops a transfer. Calling it again only adjusts the level.
    """
    root = logging.getLogger("filepilot")
    root.setLevel(level)
    # paramiko logs every channel event at DEBUG
    logging.getLogger("paramiko").setLevel(max(level, logging.WARNING))

    existing = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
    if existing:
        for h in existing:
            h.setLevel(level)
        return Path(existing[0].baseFilename)

    p = path or log_path()
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(p, maxBytes=_MAX_BYTES, backupCount=_BACKUPS, encoding="utf-8")
    except OSError as e:
        print(f"filepilot: file logging disabled ({e})", file=sys.stderr)
        p = None
    else:
        fh.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        fh.setLevel(level)
        root.addHandler(fh)

    if console:
        sh = logging.StreamHandler(sys.stderr)
        sh.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        sh.setLevel(level)
        root.addHandler(sh)

    logging.captureWarnings(True)
    return p


def install_excepthook(logger_name: Optional[str] = None) -> None:
    """Send uncaught exceptions to the app log before the default hook prints them."""

    log = logging.getLogger(logger_name or "filepilot")

    def _hook(exc_type, exc, tb):
        if not issubclass(exc_type, KeyboardInterrupt):
            log.critical("Uncaught exception", exc_info=(exc_type, exc, tb))
        sys.__excepthook__(exc_type, exc, tb)

    sys.excepthook = _hook
