"""Configuration management for progress-sync.

Storage Structure
-----------------
<project>/
├── .progress-sync.yaml       # Project config (optional, shareable via git)
└── plans/
    └── <plan-id>/
        ├── plan.md           # Human-edited plan with markers
        └── .checkpoint/
            ├── state.json    # Live checkpoint (atomic replace)
            ├── history.jsonl # Append-only event log
            └── recovery.json # Periodic backup snapshot

~/.progress-sync/config.yaml  # User-level fallback

Cascade: project config → user config → built-in defaults.
PROGRESS_SYNC_DISABLED=1 in the environment always wins over ``disabled``.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from progress_sync.atomic import atomic_write_yaml
from progress_sync.errors import Result, SyncError

logger = logging.getLogger(__name__)

USER_DIR = Path.home() / ".progress-sync"
USER_CONFIG_PATH = USER_DIR / "config.yaml"
PROJECT_CONFIG_NAME = ".progress-sync.yaml"
DISABLE_ENV_VAR = "PROGRESS_SYNC_DISABLED"


@dataclass
class SyncConfig:
    """Tunable settings for checkpoint synchronization."""

    disabled: bool = False

    # Plan layout
    plans_dir: str = "plans"
    plan_filename: str = "plan.md"
    checkpoint_dirname: str = ".checkpoint"
    ignored_plan_dirs: list[str] = field(default_factory=lambda: ["templates", "reports"])

    # Write a recovery backup when the history length is a multiple of this (0 = never)
    backup_interval: int = 5

    # Recorded as completedBy on newly completed tasks
    actor: str = "main"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncConfig":
        """Create config from a dict, ignoring unknown keys.

        Values are coerced to the field's type. A value that cannot be
        coerced is dropped with a warning and the default is used.
        """
        valid_fields = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in valid_fields:
                continue
            try:
                values[key] = coerce_value(key, value)
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring config {key}={value!r}: {e}")
        return cls(**values)

    @classmethod
    def load(cls, config_path: Path) -> "SyncConfig":
        """Load config from a YAML file, or defaults if it doesn't exist."""
        if not config_path.exists():
            return cls()
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Ignoring unreadable config {config_path}: {e}")
            return cls()
        if not isinstance(data, dict):
            logger.warning(f"Ignoring config {config_path}: expected a mapping")
            return cls()
        return cls.from_dict(data)

    def save(self, config_path: Path) -> Result[Path, SyncError]:
        """Save non-default values to a YAML file."""
        defaults = SyncConfig()
        data = {k: v for k, v in self.to_dict().items() if getattr(defaults, k) != v}
        if not data:
            data = {"_version": 1}
        return atomic_write_yaml(config_path, data)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


def coerce_value(key: str, value: Any) -> Any:
    """Convert a raw YAML or command-line value to the type of field ``key``.

    Raises:
        KeyError: if key is not a SyncConfig field
        ValueError, TypeError: if value cannot be converted
    """
    if key not in {f.name for f in fields(SyncConfig)}:
        raise KeyError(key)
    default = getattr(SyncConfig(), key)

    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValueError(f"expected a boolean, got {value!r}")

    if isinstance(default, int):
        if isinstance(value, bool) or isinstance(value, float) and not value.is_integer():
            raise ValueError(f"expected an integer, got {value!r}")
        return int(value)

    if isinstance(default, list):
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        raise TypeError(f"expected a list, got {type(value).__name__}")

    if isinstance(value, (dict, list)):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    return str(value)


def config_path(project_root: Path | None = None) -> Path:
    """Config file for a project, or the user-level file when project_root is None."""
    if project_root is not None:
        return project_root / PROJECT_CONFIG_NAME
    return USER_CONFIG_PATH


def env_disabled() -> bool:
    """True when the environment switch turns syncing off."""
    return os.environ.get(DISABLE_ENV_VAR) == "1"


def get_sync_config(project_path: Path | None = None) -> SyncConfig:
    """Load SyncConfig with project → user → default cascade.

    Args:
        project_path: Explicit project root. If None, auto-detects.

    Returns:
        SyncConfig with the environment switch applied
    """
    root = project_path if project_path is not None else detect_project_root()

    config = None
    if root is not None and config_path(root).exists():
        config = SyncConfig.load(config_path(root))
    if config is None:
        config = SyncConfig.load(config_path())

    if env_disabled():
        config.disabled = True
    return config


def detect_project_root(start_path: Path | None = None, plans_dir: str = "plans") -> Path | None:
    """Walk up from start_path looking for a plans directory or a git root.

    Args:
        start_path: Starting path for traversal. Defaults to cwd.
        plans_dir: Name of the plans directory to look for

    Returns:
        Project root path, or None if no project markers found.
    """
    current = (start_path or Path.cwd()).resolve()

    while True:
        if (current / plans_dir).is_dir() or (current / PROJECT_CONFIG_NAME).exists():
            return current
        if (current / ".git").exists():
            return current
        if current == current.parent:
            return None
        current = current.parent
