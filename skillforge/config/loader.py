"""Configuration loading.

Settings come from YAML, first match wins:

1. ``path`` argument (``--config`` on the command line)
2. ``SKILLFORGE_CONFIG`` environment variable
3. ``~/.skillforge/config.yaml``

Keys missing from the chosen file fall back to the packaged defaults.yaml.
``SKILLFORGE_WORKSPACE`` and ``SKILLFORGE_DB_PATH`` override the file.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from skillforge.core.reconcile.stages import StageDefinition, StageTable
from skillforge.core.storage.paths import (
    component_db_path,
    default_workspace_path,
    logs_dir,
    skillforge_home,
)

logger = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

_KNOWN_KEYS = {"workspace_path", "db_path", "workers", "log_level", "log_file", "stages"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigError(ValueError):
    """Configuration file missing, unreadable or invalid."""


@dataclass
class ReconcileConfig:
    """Resolved settings for one process."""

    workspace_path: Path = field(default_factory=default_workspace_path)
    db_path: Path = field(default_factory=lambda: component_db_path("catalog"))
    workers: int = 1
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    stages: StageTable = field(default_factory=StageTable)
    source: Optional[Path] = None  # file the settings were read from

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workspace_path": str(self.workspace_path),
            "db_path": str(self.db_path),
            "workers": self.workers,
            "log_level": self.log_level,
            "log_file": str(self.log_file) if self.log_file else None,
            "stages": [s.stage for s in self.stages.stages],
            "source": str(self.source) if self.source else None,
        }


def get_user_config_path() -> Path:
    return skillforge_home() / "config.yaml"


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def _resolve_source(path: Optional[Union[str, Path]]) -> Optional[Path]:
    if path is not None:
        explicit = Path(path).expanduser()
        if not explicit.exists():
            raise ConfigError(f"Config file not found: {explicit}")
        return explicit

    env_path = os.getenv("SKILLFORGE_CONFIG")
    if env_path:
        from_env = Path(env_path).expanduser()
        if not from_env.exists():
            raise ConfigError(f"SKILLFORGE_CONFIG points to a missing file: {from_env}")
        return from_env

    user_path = get_user_config_path()
    if user_path.exists():
        return user_path
    return None


def _parse_stages(raw: Any) -> StageTable:
    if not isinstance(raw, list) or not raw:
        raise ConfigError("'stages' must be a non-empty list")
    try:
        definitions = [StageDefinition.from_dict(item) for item in raw]
        return StageTable(definitions)
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid stage table: {e}") from e


def _optional_path(value: Any) -> Optional[Path]:
    if value is None or value == "":
        return None
    return Path(str(value)).expanduser()


def load_config(path: Optional[Union[str, Path]] = None) -> ReconcileConfig:
    """Load settings, falling back to the packaged defaults.

    Args:
        path: Explicit config file

    Returns:
        ReconcileConfig

    Raises:
        ConfigError: If a file cannot be read or a value is invalid
    """
    data = _read_yaml(DEFAULTS_PATH)
    source = _resolve_source(path)
    if source is not None:
        overrides = _read_yaml(source)
        unknown = set(overrides) - _KNOWN_KEYS
        if unknown:
            logger.warning(f"Ignoring unknown config keys in {source}: {sorted(unknown)}")
        data.update({k: v for k, v in overrides.items() if k in _KNOWN_KEYS})
        logger.debug(f"Loaded config from {source}")

    if os.getenv("SKILLFORGE_WORKSPACE"):
        data["workspace_path"] = os.environ["SKILLFORGE_WORKSPACE"]
    if os.getenv("SKILLFORGE_DB_PATH"):
        data["db_path"] = os.environ["SKILLFORGE_DB_PATH"]

    try:
        workers = int(data.get("workers", 1))
    except (TypeError, ValueError):
        raise ConfigError(f"'workers' must be an integer, got {data.get('workers')!r}")
    if workers < 1:
        raise ConfigError(f"'workers' must be >= 1, got {workers}")

    log_level = str(data.get("log_level") or "INFO").upper()
    if log_level not in _LOG_LEVELS:
        raise ConfigError(f"'log_level' must be one of {sorted(_LOG_LEVELS)}, got {log_level!r}")

    return ReconcileConfig(
        workspace_path=_optional_path(data.get("workspace_path")) or default_workspace_path(),
        db_path=_optional_path(data.get("db_path")) or component_db_path("catalog"),
        workers=workers,
        log_level=log_level,
        log_file=_optional_path(data.get("log_file")) or logs_dir() / "skillforge.log",
        stages=_parse_stages(data.get("stages")),
        source=source,
    )


__all__ = ["ReconcileConfig", "ConfigError", "load_config", "get_user_config_path", "DEFAULTS_PATH"]
