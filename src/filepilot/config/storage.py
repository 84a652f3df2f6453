from __future__ import annotations

import json
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional

from filepilot.config.models import EngineConfig
from filepilot.core.logging import get_logger
from filepilot.core.paths import app_data_dir

_log = get_logger("filepilot.config")

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


def _coerce(default: Any, value: Any) -> Any:
    # bool("false") is True, so booleans are matched by spelling
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(value)
    if isinstance(value, bool):
        raise TypeError(value)
    return type(default)(value)


def _config_path() -> Path:
    return app_data_dir() / "config.json"


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    p = path or _config_path()
    if not p.exists():
        return {}
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except ValueError:
        # corrupted config; keep a backup and start fresh
        _log.warning(f"config corrupted, moving aside: {p}")
        try:
            p.rename(p.with_suffix(".json.bak"))
        except OSError:
            pass
        return {}
    return data if isinstance(data, dict) else {}


def save_config(cfg: Dict[str, Any], path: Optional[Path] = None) -> None:
    p = path or _config_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(cfg, ensure_ascii=False, indent=2), encoding="utf-8")


def load_engine_config(path: Optional[Path] = None) -> EngineConfig:
    """Build an EngineConfig from the ``engine`` section; unknown keys are ignored."""
    section = load_config(path).get("engine")
    if not isinstance(section, dict):
        return EngineConfig()

    known = {f.name for f in fields(EngineConfig)}
    kwargs: Dict[str, Any] = {}
    for key, value in section.items():
        if key not in known:
            continue
        default = getattr(EngineConfig, key)
        try:
            kwargs[key] = _coerce(default, value)
        except (TypeError, ValueError):
            _log.warning(f"config: ignoring invalid value for engine.{key}: {value!r}")
    return EngineConfig(**kwargs)


def save_engine_config(engine: EngineConfig, path: Optional[Path] = None) -> None:
    cfg = load_config(path)
    cfg["engine"] = asdict(engine)
    save_config(cfg, path)
