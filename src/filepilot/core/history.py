import json
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from filepilot.core.logging import get_logger
from filepilot.core.paths import app_data_dir

_MAX_EVENTS = 50
_log = get_logger("filepilot.history")


def history_path() -> Path:
    return app_data_dir() / "history.json"


def load_events(path: Optional[Path] = None) -> List[dict]:
    p = path or history_path()
    if not p.exists():
        return []
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        _log.warning(f"history unreadable, starting fresh: {e}")
        return []
    return data if isinstance(data, list) else []


def append_event(event: dict, path: Optional[Path] = None) -> None:
    """Append a finished-operation record; newest first, trimmed to 50."""
    p = path or history_path()
    data = load_events(p)
    event = dict(event or {})
    event["ts"] = datetime.now().isoformat(timespec="seconds")
    data.insert(0, event)
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps(data[:_MAX_EVENTS], ensure_ascii=False, indent=2), encoding="utf-8")
    except OSError as e:
        _log.error(f"Failed to save operation history: {e}")
