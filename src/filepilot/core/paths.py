from __future__ import annotations

import os
from pathlib import Path


def app_data_dir() -> Path:
    """Directory for app.log, config.json and history.json.

    ``$FILEPILOT_HOME`` when set, otherwise ``~/.filepilot``; created on demand.
    """
    override = os.environ.get("FILEPILOT_HOME")
    base = Path(override).expanduser() if override else Path.home() / ".filepilot"
    base.mkdir(parents=True, exist_ok=True)
    return base
