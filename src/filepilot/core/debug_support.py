from __future__ import annotations

import platform
import sys
import time
import uuid
from dataclasses import asdict, dataclass
from importlib import metadata
from typing import Any, Optional

from filepilot.core.logging import get_logger

# Distributions whose versions matter when reading a field report.
_REPORTED_DISTS = ("PySide6", "paramiko")


@dataclass(frozen=True)
class ErrorId:
    """Short id shown in a failure notification and written next to the traceback."""

    area: str
    token: str

    def __str__(self) -> str:
        return f"{self.area}-{self.token}"


def new_error_id(area: str) -> ErrorId:
    return ErrorId(area=(area or "GEN").upper(), token=uuid.uuid4().hex[:6].upper())


def _dist_version(name: str) -> str:
    try:
        return metadata.version(name)
    except metadata.PackageNotFoundError:
        return "missing"


def log_startup_snapshot(config: Any = None, *, backend: str = "local") -> None:
    """Log interpreter, library and engine settings once per process."""

    from filepilot import __version__

    log = get_logger("filepilot.startup")
    log.info(f"=== filepilot {__version__} ===")
    log.info(f"python={sys.version.split()[0]} os={platform.system()} {platform.release()} arch={platform.machine()}")
    log.info("libs=" + " ".join(f"{d}={_dist_version(d)}" for d in _REPORTED_DISTS))
    log.info(f"backend={backend}")
    if config is not None:
        log.info("engine=" + " ".join(f"{k}={v}" for k, v in asdict(config).items()))


def log_exception_with_id(
    area: str,
    exc: BaseException,
    *,
    context: Optional[str] = None,
    logger_name: str = "filepilot",
) -> ErrorId:
    """Log ``exc`` with its traceback and return the id to show the user."""

    err_id = new_error_id(area)
    where = f" ({context})" if context else ""
    get_logger(logger_name).error(f"Error-ID={err_id}{where}", exc_info=exc)
    return err_id


def timed() -> float:
    return time.monotonic()
