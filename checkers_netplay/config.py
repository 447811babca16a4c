from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from .seats import PLAYER_MODES

logger = logging.getLogger(__name__)

SETTINGS_FILE = "checkers_settings.json"
SETTINGS_ENV = "CHECKERS_SETTINGS"
ENV_PREFIX = "CHECKERS_"


class ConfigurationError(ValueError):
    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid setting {field}={value!r}: {reason}")


@dataclass
class Settings:
    rows: int = 6
    cols: int = 6
    rows_per_side: int = 2
    max_players: int = 2
    coins_per_win: int = 10
    discovery_port: int = 47777
    broadcast_interval: float = 1.0
    connect_timeout: float = 5.0
    bind_host: str = "0.0.0.0"
    port: int = 8000
    progress_db: str = "checkers_progress.db"

    def __post_init__(self) -> None:
        if self.rows <= 0 or self.cols <= 0:
            raise ConfigurationError("rows/cols", (self.rows, self.cols), "board dimensions must be positive")
        if self.max_players not in PLAYER_MODES:
            raise ConfigurationError("max_players", self.max_players, f"must be one of {PLAYER_MODES}")
        if self.rows_per_side < 0:
            raise ConfigurationError("rows_per_side", self.rows_per_side, "must not be negative")
        if self.broadcast_interval <= 0:
            raise ConfigurationError("broadcast_interval", self.broadcast_interval, "must be positive")
        if self.connect_timeout <= 0:
            raise ConfigurationError("connect_timeout", self.connect_timeout, "must be positive")


def _settings_path() -> Path:
    override = os.environ.get(SETTINGS_ENV)
    if override:
        return Path(override)
    return Path.cwd() / SETTINGS_FILE


def _read_settings_file(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("ignoring unreadable settings file %s: %s", path, exc)
        return {}
    if not isinstance(payload, dict):
        logger.warning("ignoring settings file %s: top level is not an object", path)
        return {}
    return payload


def _coerce(name: str, kind: Any, value: Any) -> Any:
    if kind in (int, "int"):
        if isinstance(value, bool):
            raise ConfigurationError(name, value, "expected an integer")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(name, value, "expected an integer") from None
    if kind in (float, "float"):
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(name, value, "expected a number") from None
    return str(value)


def load_settings(path: Optional[Path] = None, **overrides: Any) -> Settings:
    """Resolve every field: keyword argument, then ``CHECKERS_<FIELD>``, then the JSON file, then the default."""
    file_values = _read_settings_file(path or _settings_path())
    resolved: Dict[str, Any] = {}
    for f in fields(Settings):
        if overrides.get(f.name) is not None:
            raw = overrides[f.name]
        elif os.environ.get(ENV_PREFIX + f.name.upper()):
            raw = os.environ[ENV_PREFIX + f.name.upper()].strip()
        elif f.name in file_values:
            raw = file_values[f.name]
        else:
            continue
        resolved[f.name] = _coerce(f.name, f.type, raw)
    unknown = set(overrides) - {f.name for f in fields(Settings)}
    if unknown:
        raise ConfigurationError(",".join(sorted(unknown)), None, "unknown setting")
    return Settings(**resolved)


__all__ = ["ConfigurationError", "Settings", "load_settings"]
