"""Central logging utilities.

Every module logs under the ``filepilot`` hierarchy so that
``setup_logging`` only has to configure one logger.
"""

from __future__ import annotations

import logging
from pathlib import Path

from filepilot.core.paths import app_data_dir


def log_path() -> Path:
    return app_data_dir() / "app.log"


def get_logger(name: str = "filepilot") -> logging.Logger:
    return logging.getLogger(name)
